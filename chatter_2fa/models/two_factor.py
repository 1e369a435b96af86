"""
Two-Factor Authentication Model

Stores the TOTP secret and remaining backup codes for each user who has
started 2FA enrollment.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from chatter_2fa.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserTwoFactor(Base):
    """
    Two-factor authentication settings for a user.

    ``user_id`` refers to the external user store; there is no foreign key.
    ``version`` is bumped by every write and guards conditional updates.
    """

    __tablename__ = "user_2fa"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    user_id = Column(String(255), unique=True, nullable=False, index=True)

    # Base32 TOTP secret
    secret = Column(String(128), nullable=False)

    # Whether 2FA is fully enabled (after initial verification)
    is_enabled = Column(Boolean, default=False, nullable=False)

    # SHA-256 hashes of the remaining single-use backup codes
    backup_codes = Column(JSON, nullable=False, default=list)

    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    enabled_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UserTwoFactor(user_id={self.user_id}, enabled={self.is_enabled})>"
