from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # refresh_tokens.user_id relies on ON DELETE CASCADE
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, timeout_seconds: float):
    """
    Create an engine whose every store call is bounded in time.

    Lock waits, connects and statements that exceed the timeout raise
    OperationalError, which the stores report as StorageUnavailable.
    """
    if database_url.startswith("sqlite"):
        # sqlite's pool does not take pool_timeout; the busy timeout bounds lock waits
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }

    return create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )


engine = build_engine(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
