import uuid

from core.database import Base
from sqlalchemy import Column, Boolean, DateTime, String, ForeignKey
from sqlalchemy.orm import relationship


class RefreshToken(Base):
    """
    Persisted refresh token.

    Rows are never deleted on revocation so a rotated or logged-out token
    presented again can be recognised as reuse. Only the expiry sweep
    removes rows.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token = Column(String(255), nullable=False, unique=True, index=True)
    expiry_date = Column(DateTime(timezone=True), nullable=False, index=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    # rotation chain
    created_by_token = Column(String(255), nullable=True)
    replaced_by_token = Column(String(255), nullable=True)

    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(32), nullable=True)
