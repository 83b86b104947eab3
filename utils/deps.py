from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.config import AuthConfig, settings
from core.database import SessionLocal
from services.auth_service import AuthService
from stores.refresh_token_store import SqlAlchemyRefreshTokenStore
from stores.user_store import SqlAlchemyUserStore


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_auth_config() -> AuthConfig:
    return AuthConfig.from_settings(settings)


def build_auth_service(db: Session, config: AuthConfig) -> AuthService:
    return AuthService(
        config=config,
        users=SqlAlchemyUserStore(db),
        refresh_tokens=SqlAlchemyRefreshTokenStore(db),
    )


def get_auth_service(db: db_dependency, config: Annotated[AuthConfig, Depends(get_auth_config)]) -> AuthService:
    return build_auth_service(db, config)


auth_service_dependency = Annotated[AuthService, Depends(get_auth_service)]
