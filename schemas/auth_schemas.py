from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from utils.clock import ensure_utc


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"
    FACEBOOK = "facebook"


class RevokedReason(str, Enum):
    ROTATED = "rotated"
    LOGOUT = "logout"
    REUSE_DETECTED = "reuse-detected"
    EXPIRED_CLEANUP = "expired-cleanup"


class _Record(BaseModel):
    """Immutable value passed between the stores and AuthService."""
    model_config = ConfigDict(frozen=True, from_attributes=True, use_enum_values=False)


class NewUser(_Record):
    email: str
    password_hash: str | None = None
    password_salt: str | None = None
    auth_provider: AuthProvider = AuthProvider.LOCAL
    external_id: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value):
        value = normalize_email(value)
        if not value:
            raise ValueError('Email cannot be empty')
        return value


class UserRecord(_Record):
    id: str
    email: str
    password_hash: str | None = None
    password_salt: str | None = None
    auth_provider: AuthProvider = AuthProvider.LOCAL
    external_id: str | None = None

    @property
    def has_local_password(self) -> bool:
        return (
            self.auth_provider == AuthProvider.LOCAL
            and self.password_hash is not None
            and self.password_salt is not None
        )


class RefreshTokenRecord(_Record):
    """
    Session credential as seen by the auth core.

    ``id`` is empty until the store assigns one on insert.
    """
    id: str = ""
    token: str
    user_id: str
    expiry_date: datetime
    is_revoked: bool = False
    created_at: datetime
    created_by_token: str | None = None
    replaced_by_token: str | None = None
    revoked_at: datetime | None = None
    revoked_reason: RevokedReason | None = None

    @field_validator('expiry_date', 'created_at', 'revoked_at')
    @classmethod
    def validate_utc(cls, value):
        return ensure_utc(value)

    @model_validator(mode='after')
    def validate_revocation_fields(self):
        if self.is_revoked != (self.revoked_at is not None):
            raise ValueError('is_revoked must be set exactly when revoked_at is set')
        if self.replaced_by_token is not None and not self.is_revoked:
            raise ValueError('a replaced token must be revoked')
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date <= now

    def is_active(self, now: datetime) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def revoke(self, now: datetime, reason: RevokedReason,
               replaced_by_token: str | None = None) -> "RefreshTokenRecord":
        return self.model_copy(update={
            "is_revoked": True,
            "revoked_at": now,
            "revoked_reason": reason,
            "replaced_by_token": replaced_by_token or self.replaced_by_token,
        })


class LoginResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    access_token: str
    refresh_token: str
    access_token_expiry: datetime
    refresh_token_expiry: datetime
