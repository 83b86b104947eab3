from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ErrorCodes
from core.result import Err, Ok, Result
from models.refresh_tokens import RefreshToken
from schemas.auth_schemas import RefreshTokenRecord
from stores.base import store_operation
from utils.clock import Clock, utc_now
from utils.logger import get_logger, redact_token

logger = get_logger(__name__)


class RefreshTokenStore(Protocol):
    """Persistence port for refresh-token records."""

    def add(self, token: RefreshTokenRecord) -> Result[RefreshTokenRecord]: ...

    def find_by_token(self, token: str) -> Result[RefreshTokenRecord]: ...

    def update(self, token: RefreshTokenRecord) -> Result[bool]: ...

    def revoke_if_active(self, token: RefreshTokenRecord) -> Result[bool]: ...

    def find_by_user_id(self, user_id: str) -> Result[list[RefreshTokenRecord]]: ...

    def delete_expired(self) -> Result[bool]: ...

    def delete_by_user_id(self, user_id: str) -> Result[int]: ...


def _columns(token: RefreshTokenRecord) -> dict:
    return {
        "token": token.token,
        "user_id": token.user_id,
        "expiry_date": token.expiry_date,
        "is_revoked": token.is_revoked,
        "created_at": token.created_at,
        "created_by_token": token.created_by_token,
        "replaced_by_token": token.replaced_by_token,
        "revoked_at": token.revoked_at,
        "revoked_reason": token.revoked_reason.value if token.revoked_reason else None,
    }


class SqlAlchemyRefreshTokenStore:
    """
    RefreshTokenStore backed by the ``refresh_tokens`` table.

    Every write commits immediately; the session expires its identity map
    on commit, so later reads never see stale revocation state.
    """

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    @store_operation
    def add(self, token: RefreshTokenRecord) -> Result[RefreshTokenRecord]:
        model = RefreshToken(**_columns(token))
        self.db.add(model)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.error(
                "Refresh token insert rejected by unique index",
                extra={"user_id": token.user_id, "token": redact_token(token.token)}
            )
            return Err(ErrorCodes.STORAGE_UNAVAILABLE, "Refresh token could not be stored")

        self.db.refresh(model)
        return Ok(RefreshTokenRecord.model_validate(model))

    @store_operation
    def find_by_token(self, token: str) -> Result[RefreshTokenRecord]:
        model = self.db.query(RefreshToken).filter(RefreshToken.token == token).one_or_none()
        # Guard against case-insensitive collations on the backing database
        if model is None or model.token != token:
            return Err(ErrorCodes.TOKEN_NOT_FOUND, "Refresh token not found")
        return Ok(RefreshTokenRecord.model_validate(model))

    @store_operation
    def update(self, token: RefreshTokenRecord) -> Result[bool]:
        updated = self.db.query(RefreshToken).filter(
            RefreshToken.id == token.id
        ).update(_columns(token), synchronize_session=False)
        self.db.commit()

        if updated == 0:
            return Err(ErrorCodes.TOKEN_NOT_FOUND, "Refresh token not found")
        return Ok(True)

    @store_operation
    def revoke_if_active(self, token: RefreshTokenRecord) -> Result[bool]:
        """
        Write ``token`` only if the stored row is still unrevoked.

        Returns Ok(False) when another caller revoked it first, which is
        how two concurrent refreshes of the same token are told apart.
        """
        updated = self.db.query(RefreshToken).filter(
            RefreshToken.id == token.id,
            RefreshToken.is_revoked == False  # noqa: E712
        ).update(_columns(token), synchronize_session=False)
        self.db.commit()
        return Ok(updated == 1)

    @store_operation
    def find_by_user_id(self, user_id: str) -> Result[list[RefreshTokenRecord]]:
        models = self.db.query(RefreshToken).filter(RefreshToken.user_id == user_id).all()
        return Ok([RefreshTokenRecord.model_validate(m) for m in models])

    @store_operation
    def delete_expired(self) -> Result[bool]:
        now = self.clock()
        deleted = self.db.query(RefreshToken).filter(
            RefreshToken.expiry_date < now
        ).delete(synchronize_session=False)
        self.db.commit()

        logger.info(
            "Expired refresh tokens purged",
            extra={"deleted": deleted}
        )
        return Ok(True)

    @store_operation
    def delete_by_user_id(self, user_id: str) -> Result[int]:
        deleted = self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return Ok(deleted)
