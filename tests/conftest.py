import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("LOG_DIR", "logs")

import pytest
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from core.config import AuthConfig
from core.database import Base, build_engine
from services.auth_service import AuthService
from stores.refresh_token_store import SqlAlchemyRefreshTokenStore
from stores.user_store import SqlAlchemyUserStore
from tests.fakes import FrozenClock
import models  # noqa: F401

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = build_engine(SQLALCHEMY_DATABASE_URL, timeout_seconds=5)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(session):
    """Factory handing out extra sessions on the same test database."""
    return TestingSessionLocal


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        secret_key="test-secret-key-not-for-production",
        algorithm="HS256",
        access_token_lifetime=timedelta(minutes=15),
        refresh_token_lifetime=timedelta(days=7),
    )


@pytest.fixture
def user_store(session) -> SqlAlchemyUserStore:
    return SqlAlchemyUserStore(session)


@pytest.fixture
def token_store(session, clock) -> SqlAlchemyRefreshTokenStore:
    return SqlAlchemyRefreshTokenStore(session, clock=clock)


@pytest.fixture
def auth_service(auth_config, user_store, token_store, clock) -> AuthService:
    return AuthService(
        config=auth_config,
        users=user_store,
        refresh_tokens=token_store,
        clock=clock,
    )


@pytest.fixture
def registered_user(auth_service):
    """A local account for user@example.com / Passw0rd!"""
    return auth_service.register("user@example.com", "Passw0rd!").unwrap()


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that talks to the app in-process.
    """
    from main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac
