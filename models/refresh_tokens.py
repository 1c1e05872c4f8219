from datetime import datetime
from core.database import Base
from sqlalchemy import Column, Boolean, DateTime, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, as_utc


class RefreshToken(Base, CreatedAtMixin):
    """
    Stores refresh tokens for user authentication.

    Refresh tokens are long-lived (7 days by default) and allow users to get
    new access tokens without logging in again. Only a SHA-256 hash of the
    token is stored; the raw value exists solely on the client.

    A record is valid while it is not revoked and not past `expires_at`.
    Revocation is the only write after insert; rows are kept for audit.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token_hash = Column(String(255), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)

    # audit metadata
    device_info = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)

    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(50), nullable=True)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= now

    def is_valid(self, now: datetime) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def revoke(self, reason: str, now: datetime) -> None:
        self.is_revoked = True
        self.revoked_at = now
        self.revoked_reason = reason
