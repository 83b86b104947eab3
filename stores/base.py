from functools import wraps

from sqlalchemy.exc import SQLAlchemyError

from core.errors import ErrorCodes
from core.result import Err
from utils.logger import get_logger

logger = get_logger(__name__)


def store_operation(fn):
    """
    Turn any SQLAlchemy failure raised inside a store method into
    Err(StorageUnavailable).

    Timeouts surface from the driver as OperationalError, so a hung
    database shows up here instead of blocking the caller. The session is
    rolled back so the next call on it starts clean.
    """
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(
                "Store operation failed",
                extra={
                    "operation": fn.__qualname__,
                    "error_type": type(exc).__name__,
                },
                exc_info=True
            )
            return Err(ErrorCodes.STORAGE_UNAVAILABLE, "Storage unavailable")

    return wrapper
