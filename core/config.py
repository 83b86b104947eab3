from datetime import timedelta

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./library.db"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    STORE_TIMEOUT_SECONDS: float = 5.0
    TOKEN_CLEANUP_INTERVAL_HOURS: float = 24
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"


class AuthConfig(BaseModel):
    """
    Token lifetimes and signing settings handed to AuthService.

    Built once from Settings at startup (or directly in tests) so the
    service never reads global state.
    """
    model_config = ConfigDict(frozen=True)

    secret_key: str
    algorithm: str = "HS256"
    access_token_lifetime: timedelta = timedelta(minutes=15)
    refresh_token_lifetime: timedelta = timedelta(days=7)

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value):
        if not value or not value.strip():
            raise ValueError("secret_key cannot be empty")
        return value

    @field_validator("access_token_lifetime", "refresh_token_lifetime")
    @classmethod
    def validate_lifetime(cls, value):
        if value <= timedelta(0):
            raise ValueError("token lifetimes must be positive")
        return value

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            access_token_lifetime=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_token_lifetime=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )


settings = Settings()
