import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.config import settings
from core.database import Base, SessionLocal, engine
from core.logging_config import setup_logging
from services.token_cleanup import run_token_cleanup
from utils.logger import get_logger

# Import models so Base.metadata knows every table
import models  # noqa: F401

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    cleanup_task = asyncio.create_task(run_token_cleanup(
        SessionLocal,
        interval=timedelta(hours=settings.TOKEN_CLEANUP_INTERVAL_HOURS),
    ))
    logger.info("Application startup complete", extra={"event": "startup"})

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Library Auth API",
    description="Authentication and session lifecycle for the library backend",
    version="1.0.0",
    lifespan=lifespan
)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Log any unhandled exception with its stack trace and return a
    generic 500 without exposing internals.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
