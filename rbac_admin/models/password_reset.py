"""Password reset token model."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from rbac_admin.db.base import Base


class PasswordResetToken(Base):
    """Single-use reset token, valid until ``expires_at``.

    Deleted on first successful redemption; expired rows are swept by
    ``rbacctl tokens purge-expired``.
    """
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
