import asyncio
from datetime import timedelta

from starlette.concurrency import run_in_threadpool

from core.result import Result
from stores.refresh_token_store import SqlAlchemyRefreshTokenStore
from utils.clock import Clock, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


def purge_expired_tokens(session_factory, clock: Clock = utc_now) -> Result[bool]:
    """
    Run one expired-token sweep in its own session.
    """
    db = session_factory()
    try:
        result = SqlAlchemyRefreshTokenStore(db, clock=clock).delete_expired()
    finally:
        db.close()

    if result.is_ok():
        logger.info("Refresh token cleanup finished")
    else:
        logger.error(
            "Refresh token cleanup failed",
            extra={"error_code": result.code, "detail": result.message}
        )
    return result


async def run_token_cleanup(session_factory, interval: timedelta = timedelta(hours=24)):
    """
    Sweep expired refresh tokens every ``interval`` until cancelled.

    Started from the application lifespan. A failed sweep is logged and
    retried on the next tick.
    """
    while True:
        logger.info(
            "Running refresh token cleanup",
            extra={"interval_seconds": interval.total_seconds()}
        )
        try:
            await run_in_threadpool(purge_expired_tokens, session_factory)
        except Exception:
            logger.error("Error occurred during refresh token cleanup", exc_info=True)

        await asyncio.sleep(interval.total_seconds())
