"""Password reset token model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from gatekeeper.database import Base, utc_now


class PasswordResetToken(Base):
    """One-time password reset token. Only the SHA-256 digest of the secret is stored."""

    __tablename__ = "password_reset_token"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # One live token per user: a concurrent second insert fails instead of leaving two.
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    user = relationship("User", back_populates="reset_tokens")

    def is_expired(self, now) -> bool:
        return now > self.expires_at

    def __repr__(self) -> str:
        return f"<PasswordResetToken(id={self.id}, user_id={self.user_id})>"
