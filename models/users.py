import uuid

from core.database import Base
from sqlalchemy import Column, String, Enum
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin
from schemas.auth_schemas import AuthProvider


class User(Base, CreatedAtMixin):
    """
    Identity record. Email is stored lowercased so the unique index
    also enforces case-insensitive uniqueness.
    """
    __tablename__ = "users"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #relationships
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    email = Column(String(320), unique=True, nullable=False, index=True)
    # Both null for accounts created through an external provider
    password_hash = Column(String(255), nullable=True)
    password_salt = Column(String(255), nullable=True)
    auth_provider = Column(
        Enum(AuthProvider, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AuthProvider.LOCAL,
    )
    external_id = Column(String(255), nullable=True)
