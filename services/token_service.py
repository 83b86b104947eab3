import secrets
from datetime import datetime, timedelta

from jose import jwt, JWTError

from core.config import AuthConfig
from core.errors import ErrorCodes
from core.result import Err, Ok, Result
from schemas.auth_schemas import UserRecord
from utils.clock import Clock, utc_now

REFRESH_TOKEN_BYTES = 64


def generate_refresh_token_value() -> str:
    """
    Opaque refresh token value: 64 random bytes (512 bits), URL-safe.

    Unguessable and never derived from user data. The value is stored as
    is, so the ``refresh_tokens`` table must be protected like a
    credential store.
    """
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


class AccessTokenIssuer:
    """
    Issues and verifies stateless access tokens (signed JWTs).

    Verification needs only the signing key, never a store lookup.
    """

    def __init__(self, secret_key: str, algorithm: str, lifetime: timedelta,
                 clock: Clock = utc_now):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime
        self.clock = clock

    @classmethod
    def from_config(cls, config: AuthConfig, clock: Clock = utc_now) -> "AccessTokenIssuer":
        return cls(config.secret_key, config.algorithm, config.access_token_lifetime, clock)

    def issue(self, user: UserRecord) -> tuple[str, datetime]:
        """
        Create a JWT access token for ``user``.

        Returns:
            Tuple of (access_token, expiry)
        """
        now = self.clock()
        expire = now + self.lifetime

        payload = {
            "sub": user.id,
            "email": user.email,
            "type": "access",
            "iat": now,
            "exp": expire
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm), expire

    def verify(self, token: str) -> Result[dict]:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                # expiry is checked against our clock below, not the wall clock
                options={"verify_exp": False}
            )
        except JWTError:
            return Err(ErrorCodes.INVALID_CREDENTIALS, "Invalid token")

        if payload.get("type") != "access" or not payload.get("sub"):
            return Err(ErrorCodes.INVALID_CREDENTIALS, "Invalid token type")

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp <= self.clock().timestamp():
            return Err(ErrorCodes.TOKEN_EXPIRED, "Access token has expired")

        return Ok(payload)
