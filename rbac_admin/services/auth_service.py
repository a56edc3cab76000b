"""Auth service — registration, login, token refresh."""

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rbac_admin.core.config import settings
from rbac_admin.core.exceptions import (
    AccountDeactivatedError,
    ConfigurationError,
    DuplicateIdentityError,
    InvalidCredentialsError,
    NotFoundError,
)
from rbac_admin.core.security import (
    TokenService,
    hash_password,
    token_service,
    verify_dummy_password,
    verify_password,
)
from rbac_admin.db.base import utcnow
from rbac_admin.models.role import Role
from rbac_admin.models.user import User
from rbac_admin.schemas.schemas import TokenResponse, UserOut
from rbac_admin.services.activity_service import activity_service

logger = logging.getLogger("rbac_admin.auth")


class AuthService:
    """Coordinates login, registration and token refresh.

    Holds no session state; every call works against the passed-in database
    session and the token service.
    """

    def __init__(self, tokens: TokenService, default_role_name: str = "User"):
        self.tokens = tokens
        self.default_role_name = default_role_name

    def register(
        self,
        db: Session,
        email: str,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> TokenResponse:
        """Create a user with the default role and return a token pair.

        Raises:
            DuplicateIdentityError: If the email or username is taken.
            ConfigurationError: If the default role has not been seeded.
        """
        existing = db.query(User).filter(
            or_(User.email == email, User.username == username)
        ).first()
        if existing:
            raise DuplicateIdentityError("User with this email or username already exists")

        role = db.query(Role).filter(Role.name == self.default_role_name).first()
        if not role:
            logger.error("Default role '%s' is missing; seed roles first", self.default_role_name)
            raise ConfigurationError("Default role not found")

        user = User(
            email=email,
            username=username,
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role_id=role.id,
            is_active=True,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration
            db.rollback()
            raise DuplicateIdentityError("User with this email or username already exists")
        db.refresh(user)

        logger.info("Registered user %s", user.id)
        return self._token_response(user)

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TokenResponse:
        """Authenticate a user and return a token pair.

        The password is always checked before the active flag, and an unknown
        email spends the same hashing work as a wrong password.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            AccountDeactivatedError: Correct credentials, inactive account.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user:
            verify_dummy_password(password)
            logger.info("Login failed: unknown email")
            raise InvalidCredentialsError()

        if not verify_password(password, user.hashed_password):
            logger.info("Login failed: wrong password for user %s", user.id)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info("Login refused: user %s is deactivated", user.id)
            raise AccountDeactivatedError()

        user.last_login_at = utcnow()
        activity_service.log(
            db,
            user_id=user.id,
            action="login",
            resource="auth",
            details="User logged in successfully",
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        db.commit()
        db.refresh(user)

        return self._token_response(user)

    def refresh(self, db: Session, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a brand-new token pair.

        The user is reloaded from the database, so role changes and
        deactivation take effect here. The presented refresh token is not
        invalidated and stays usable until it expires.

        Raises:
            AuthError: If the token is invalid, expired or not a refresh token.
            NotFoundError: If the user no longer exists.
            AccountDeactivatedError: If the user is inactive.
        """
        claims = self.tokens.validate_refresh_token(refresh_token)

        user = db.query(User).filter(User.id == claims.user_id).first()
        if not user:
            raise NotFoundError("User not found")
        if not user.is_active:
            raise AccountDeactivatedError()

        return self._token_response(user)

    def logout(self) -> None:
        """Tokens are stateless; the client discards them."""
        return None

    def get_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def change_password(
        self, db: Session, user_id: int, current_password: str, new_password: str
    ) -> None:
        """Change a user's own password after re-checking the current one."""
        user = self.get_user(db, user_id)
        if not verify_password(current_password, user.hashed_password):
            raise InvalidCredentialsError("Current password is incorrect")
        user.hashed_password = hash_password(new_password)
        db.commit()
        logger.info("User %s changed their password", user.id)

    def _token_response(self, user: User) -> TokenResponse:
        access_token, expires_at = self.tokens.issue_access_token(user)
        refresh_token, _ = self.tokens.issue_refresh_token(user)
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_at=expires_at,
            user=UserOut.model_validate(user),
        )


auth_service = AuthService(token_service, settings.DEFAULT_ROLE_NAME)
