from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ErrorCodes
from core.result import Err, Ok, Result
from models.users import User
from schemas.auth_schemas import NewUser, UserRecord, normalize_email
from stores.base import store_operation
from utils.logger import get_logger

logger = get_logger(__name__)


class UserStore(Protocol):
    """Persistence port for user identity records."""

    def find_by_id(self, user_id: str) -> Result[UserRecord]: ...

    def find_by_email(self, email: str) -> Result[UserRecord]: ...

    def exists(self, email: str) -> Result[bool]: ...

    def add(self, new_user: NewUser) -> Result[UserRecord]: ...

    def delete(self, user_id: str) -> Result[bool]: ...


class SqlAlchemyUserStore:
    """
    UserStore backed by the ``users`` table.

    Email uniqueness is enforced by the table's unique index, so two
    concurrent registrations of the same address cannot both succeed even
    if both passed the ``exists`` check.
    """

    def __init__(self, db: Session):
        self.db = db

    @store_operation
    def find_by_id(self, user_id: str) -> Result[UserRecord]:
        model = self.db.query(User).filter(User.id == user_id).one_or_none()
        if model is None:
            return Err(ErrorCodes.USER_NOT_FOUND, f"User with id {user_id} not found")
        return Ok(UserRecord.model_validate(model))

    @store_operation
    def find_by_email(self, email: str) -> Result[UserRecord]:
        model = self.db.query(User).filter(User.email == normalize_email(email)).one_or_none()
        if model is None:
            return Err(ErrorCodes.USER_NOT_FOUND, "User not found")
        return Ok(UserRecord.model_validate(model))

    @store_operation
    def exists(self, email: str) -> Result[bool]:
        found = self.db.query(User.id).filter(User.email == normalize_email(email)).first()
        return Ok(found is not None)

    @store_operation
    def add(self, new_user: NewUser) -> Result[UserRecord]:
        model = User(
            email=normalize_email(new_user.email),
            password_hash=new_user.password_hash,
            password_salt=new_user.password_salt,
            auth_provider=new_user.auth_provider,
            external_id=new_user.external_id,
        )
        self.db.add(model)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "User insert rejected by unique email index",
                extra={"email": model.email}
            )
            return Err(ErrorCodes.USER_ALREADY_EXISTS, f"User with email {model.email} already exists")

        self.db.refresh(model)
        return Ok(UserRecord.model_validate(model))

    @store_operation
    def delete(self, user_id: str) -> Result[bool]:
        # refresh_tokens rows go with it through ON DELETE CASCADE
        deleted = self.db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        self.db.commit()
        return Ok(deleted > 0)
