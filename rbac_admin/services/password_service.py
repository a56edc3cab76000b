"""Password reset service — single-use, time-limited reset tokens."""

import logging
import secrets
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac_admin.core.config import settings
from rbac_admin.core.exceptions import InvalidResetTokenError, NotFoundError
from rbac_admin.core.security import hash_password
from rbac_admin.db.base import utcnow
from rbac_admin.models.password_reset import PasswordResetToken
from rbac_admin.models.user import User

logger = logging.getLogger("rbac_admin.password_reset")

TOKEN_BYTES = 32  # 256 bits


class PasswordResetService:
    """Issues reset tokens and redeems them exactly once."""

    def __init__(self, token_ttl: timedelta = timedelta(hours=1)):
        self.token_ttl = token_ttl

    def create_reset_token(self, db: Session, email: str) -> str:
        """Create a reset token for the user owning ``email``.

        Raises:
            NotFoundError: If no user has this email. Callers facing the
                network must answer exactly as on success.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user:
            raise NotFoundError("User not found")

        token = secrets.token_hex(TOKEN_BYTES)
        db.add(PasswordResetToken(
            user_id=user.id,
            token=token,
            expires_at=utcnow() + self.token_ttl,
        ))
        db.commit()

        # Delivery (e-mail) is handled outside this service.
        logger.info("Issued password reset token for user %s", user.id)
        return token

    def reset_password(self, db: Session, token: str, new_password: str) -> None:
        """Redeem ``token`` and set a new password.

        Unknown, expired and already-used tokens fail identically.

        Raises:
            InvalidResetTokenError: If the token cannot be redeemed.
        """
        reset_token = (
            db.query(PasswordResetToken)
            .filter(
                PasswordResetToken.token == token,
                PasswordResetToken.expires_at > utcnow(),
            )
            .with_for_update()
            .first()
        )
        if not reset_token:
            raise InvalidResetTokenError()

        user = db.query(User).filter(User.id == reset_token.user_id).first()
        if not user:
            raise InvalidResetTokenError()

        token_id, user_id = reset_token.id, user.id
        new_hash = hash_password(new_password)

        # Consume the token in the same transaction, while the row lock is held.
        try:
            user.hashed_password = new_hash
            db.delete(reset_token)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "Failed to delete used reset token %s for user %s",
                token_id, user_id,
            )
            # Token cleanup is best-effort; the password change is not.
            user = db.query(User).filter(User.id == user_id).one()
            user.hashed_password = new_hash
            db.commit()

        logger.info("Password reset for user %s", user_id)

    def purge_expired_tokens(self, db: Session) -> int:
        """Delete reset tokens past their expiry. Returns the number removed."""
        removed = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Purged %d expired password reset tokens", removed)
        return removed


password_reset_service = PasswordResetService(
    token_ttl=timedelta(minutes=settings.PASSWORD_RESET_EXPIRY_MINUTES),
)
