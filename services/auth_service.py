from functools import lru_cache

from core.config import AuthConfig
from core.errors import ErrorCodes
from core.result import Err, Ok, Result
from schemas.auth_schemas import (AuthProvider, LoginResult, NewUser, RefreshTokenRecord,
                                  RevokedReason, UserRecord, normalize_email)
from services.token_service import AccessTokenIssuer, generate_refresh_token_value
from stores.refresh_token_store import RefreshTokenStore
from stores.user_store import UserStore
from utils.clock import Clock, utc_now
from utils.hashing import hash_password, verify_password
from utils.logger import get_logger, redact_token

logger = get_logger(__name__)

# A concurrent rotation can mint a child after we listed the user's tokens
MAX_REVOCATION_PASSES = 3


@lru_cache(maxsize=1)
def _dummy_credentials() -> tuple[str, str]:
    return hash_password("dummy-password-for-timing")


def _invalid_credentials() -> Err:
    # Same code and message whichever check failed
    return Err(ErrorCodes.INVALID_CREDENTIALS, "Invalid credentials.")


class AuthService:
    """
    Registration, login, refresh-token rotation and revocation.

    Every operation returns a Result; nothing here raises for an expected
    failure. The service keeps no state between calls: all durable state
    lives in the two stores.

    Refresh tokens move through Active -> Rotated | Revoked | Expired.
    Rotated and Revoked are stored; Expired is decided by the clock at use
    time.
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        access_tokens: AccessTokenIssuer | None = None,
        clock: Clock = utc_now,
        token_factory=generate_refresh_token_value,
    ):
        self.config = config
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.access_tokens = access_tokens or AccessTokenIssuer.from_config(config, clock)
        self.clock = clock
        self.token_factory = token_factory

    def register(self, email: str, password: str) -> Result[UserRecord]:
        """
        Create a local account.

        Flow:
        1. Normalize email (trim, lowercase); a blank email is rejected
        2. Reject if the email is taken
        3. Hash the password with a fresh salt
        4. Insert; the unique index still guards against a concurrent insert
        """
        email = normalize_email(email)
        if not email:
            logger.warning("Registration attempt with blank email")
            return Err(ErrorCodes.INVALID_CREDENTIALS, "Email cannot be empty.")

        exists = self.users.exists(email)
        if exists.is_err():
            return exists

        if exists.value:
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            return Err(ErrorCodes.USER_ALREADY_EXISTS, f"User with email {email} already exists.")

        password_hash, password_salt = hash_password(password)

        result = self.users.add(NewUser(
            email=email,
            password_hash=password_hash,
            password_salt=password_salt,
            auth_provider=AuthProvider.LOCAL,
        ))

        if result.is_ok():
            logger.info(
                "User registered successfully",
                extra={"user_id": result.value.id, "email": email}
            )
        return result

    def login(self, email: str, password: str) -> Result[LoginResult]:
        email = normalize_email(email)

        found = self.users.find_by_email(email)
        if found.is_err():
            if found.code != ErrorCodes.USER_NOT_FOUND:
                return found

            # Burn the same hashing time as a real check
            verify_password(password, *_dummy_credentials())
            logger.warning(
                "Login failed - user not found",
                extra={"email": email}
            )
            return _invalid_credentials()

        user = found.value

        if not user.has_local_password:
            verify_password(password, *_dummy_credentials())
            logger.warning(
                "Login failed - account has no local password",
                extra={"user_id": user.id, "auth_provider": user.auth_provider.value}
            )
            return _invalid_credentials()

        if not verify_password(password, user.password_hash, user.password_salt):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "email": email}
            )
            return _invalid_credentials()

        result = self._issue_session(user)
        if result.is_ok():
            logger.info(
                "User logged in successfully",
                extra={"user_id": user.id}
            )
        return result

    def get_user(self, user_id: str) -> Result[UserRecord]:
        return self.users.find_by_id(user_id)

    def refresh(self, presented_token: str) -> Result[LoginResult]:
        """
        Exchange a refresh token for a new access + refresh token pair.

        The presented token is consumed: it is revoked with reason
        "rotated" and points at its replacement, which points back at it.
        Presenting a token that is already revoked is treated as theft and
        revokes every live token of the user.
        """
        found = self.refresh_tokens.find_by_token(presented_token)
        if found.is_err():
            return found

        token = found.value
        now = self.clock()

        if token.is_revoked:
            return self._reject_reuse(token)

        if token.is_expired(now):
            logger.info(
                "Refresh rejected - token expired",
                extra={"user_id": token.user_id, "token": redact_token(token.token)}
            )
            return Err(ErrorCodes.TOKEN_EXPIRED, "Refresh token has expired")

        user_result = self.users.find_by_id(token.user_id)
        if user_result.is_err():
            return user_result

        new_value = self.token_factory()
        swapped = self.refresh_tokens.revoke_if_active(
            token.revoke(now, RevokedReason.ROTATED, replaced_by_token=new_value)
        )
        if swapped.is_err():
            return swapped

        if not swapped.value:
            # Someone else rotated or revoked it between our read and write
            logger.warning(
                "Refresh lost race on token rotation",
                extra={"user_id": token.user_id, "token": redact_token(token.token)}
            )
            return self._reject_reuse(token)

        result = self._issue_session(user_result.value, created_by_token=token.token, token_value=new_value)

        if result.is_ok():
            logger.info(
                "Refresh token rotated",
                extra={"user_id": token.user_id, "token": redact_token(token.token)}
            )
        else:
            logger.error(
                "Refresh token rotated but replacement could not be stored",
                extra={"user_id": token.user_id, "error_code": result.code}
            )
        return result

    def logout(self, token_value: str) -> Result[bool]:
        """
        Revoke a single refresh token. Revoking an already revoked token
        succeeds without touching it.
        """
        found = self.refresh_tokens.find_by_token(token_value)
        if found.is_err():
            return found

        token = found.value
        if token.is_revoked:
            logger.info(
                "Logout for already revoked token",
                extra={"user_id": token.user_id, "token": redact_token(token.token)}
            )
            return Ok(True)

        now = self.clock()
        reason = RevokedReason.EXPIRED_CLEANUP if token.is_expired(now) else RevokedReason.LOGOUT

        # Ok(False) means a concurrent call revoked it first, which is still a logout
        result = self.refresh_tokens.revoke_if_active(token.revoke(now, reason)).map(lambda _: True)

        if result.is_ok():
            logger.info(
                "User logged out",
                extra={"user_id": token.user_id, "reason": reason.value}
            )
        return result

    def revoke_all_for_user(self, user_id: str,
                            reason: RevokedReason = RevokedReason.LOGOUT) -> Result[bool]:
        """Log out everywhere: revoke every currently active token of the user."""
        listed = self.refresh_tokens.find_by_user_id(user_id)
        if listed.is_err():
            return listed

        now = self.clock()
        revoked = 0
        for token in listed.value:
            if not token.is_active(now):
                continue
            result = self.refresh_tokens.revoke_if_active(token.revoke(now, reason))
            if result.is_err():
                return result
            revoked += int(result.value)

        logger.info(
            "Revoked all refresh tokens for user",
            extra={"user_id": user_id, "revoked": revoked, "reason": reason.value}
        )
        return Ok(True)

    def delete_account(self, user_id: str) -> Result[bool]:
        """
        Revoke the user's sessions, then delete the user. Token rows are
        removed with the user by the storage cascade.

        Returns Ok(False) if the user did not exist.
        """
        result = self.revoke_all_for_user(user_id).and_then(lambda _: self.users.delete(user_id))

        if result.is_ok():
            logger.info(
                "Account deleted" if result.value else "Account deletion for unknown user",
                extra={"user_id": user_id}
            )
        return result

    def purge_expired(self) -> Result[bool]:
        """Maintenance entry point; not on the request path."""
        return self.refresh_tokens.delete_expired()

    def _issue_session(self, user: UserRecord, created_by_token: str | None = None,
                       token_value: str | None = None) -> Result[LoginResult]:
        now = self.clock()
        record = RefreshTokenRecord(
            token=token_value or self.token_factory(),
            user_id=user.id,
            expiry_date=now + self.config.refresh_token_lifetime,
            created_at=now,
            created_by_token=created_by_token,
        )

        return self.refresh_tokens.add(record).map(
            lambda persisted: self._login_result(user, persisted)
        )

    def _login_result(self, user: UserRecord, refresh_token: RefreshTokenRecord) -> LoginResult:
        access_token, access_expiry = self.access_tokens.issue(user)
        return LoginResult(
            user_id=user.id,
            access_token=access_token,
            refresh_token=refresh_token.token,
            access_token_expiry=access_expiry,
            refresh_token_expiry=refresh_token.expiry_date,
        )

    def _reject_reuse(self, token: RefreshTokenRecord) -> Result[LoginResult]:
        revoked = self._revoke_family(token, RevokedReason.REUSE_DETECTED)
        if revoked.is_err():
            return revoked

        logger.warning(
            "Refresh token reuse detected - all sessions revoked",
            extra={
                "user_id": token.user_id,
                "token": redact_token(token.token),
                "revoked_reason": token.revoked_reason.value if token.revoked_reason else None,
                "revoked": revoked.value,
            }
        )
        return Err(ErrorCodes.REUSE_DETECTED, "Refresh token reuse detected")

    def _revoke_family(self, root: RefreshTokenRecord, reason: RevokedReason) -> Result[int]:
        """
        Revoke every token descending from ``root`` plus every other
        active token of the same user. Returns how many rows were revoked.
        """
        revoked = 0
        for _ in range(MAX_REVOCATION_PASSES):
            listed = self.refresh_tokens.find_by_user_id(root.user_id)
            if listed.is_err():
                return listed

            now = self.clock()
            targets = [
                t for t in self._descendants(root, listed.value) if not t.is_revoked
            ]
            seen = {t.token for t in targets}
            targets.extend(t for t in listed.value if t.is_active(now) and t.token not in seen)

            if not targets:
                break

            for token in targets:
                result = self.refresh_tokens.revoke_if_active(token.revoke(now, reason))
                if result.is_err():
                    return result
                revoked += int(result.value)

        return Ok(revoked)

    @staticmethod
    def _descendants(root: RefreshTokenRecord, tokens: list[RefreshTokenRecord]) -> list[RefreshTokenRecord]:
        """Walk the rotation chain forward from ``root`` (root excluded)."""
        by_value = {t.token: t for t in tokens}
        children = {}
        for t in tokens:
            if t.created_by_token:
                children.setdefault(t.created_by_token, []).append(t)

        chain = []
        visited = {root.token}
        stack = [root]
        while stack:
            current = stack.pop()
            successors = list(children.get(current.token, []))
            forward = by_value.get(current.replaced_by_token) if current.replaced_by_token else None
            if forward is not None:
                successors.append(forward)
            for successor in successors:
                if successor.token in visited:
                    continue
                visited.add(successor.token)
                chain.append(successor)
                stack.append(successor)
        return chain
