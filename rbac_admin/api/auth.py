"""Auth API router — register, login, refresh, logout, password reset."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rbac_admin.db.session import get_db
from rbac_admin.schemas.schemas import (
    LoginRequest, RegisterRequest, RefreshRequest, TokenResponse,
    ForgotPasswordRequest, ResetPasswordRequest, MessageResponse,
)
from rbac_admin.services.auth_service import auth_service
from rbac_admin.services.activity_service import client_info
from rbac_admin.services.password_service import password_reset_service
from rbac_admin.core.access import Principal, require_authenticated
from rbac_admin.core.exceptions import NotFoundError, unauthorized

logger = logging.getLogger("rbac_admin.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = (
    "If a matching account was found, a password reset link has been sent."
)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new user with the default role."""
    return auth_service.register(
        db, body.email, body.username, body.password, body.first_name, body.last_name,
    )


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens."""
    ip, ua = client_info(request)
    return auth_service.login(db, body.email, body.password, ip, ua)


@router.post("/refresh", response_model=TokenResponse)
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new token pair."""
    try:
        return auth_service.refresh(db, body.refresh_token)
    except NotFoundError:
        raise unauthorized("Invalid refresh token")


@router.post("/logout", response_model=MessageResponse)
async def logout(principal: Principal = Depends(require_authenticated)):
    """Tokens are stateless; the client discards them."""
    auth_service.logout()
    return MessageResponse(message="Logout successful")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Start a password reset. The answer never reveals whether the email exists."""
    try:
        password_reset_service.create_reset_token(db, body.email)
    except NotFoundError:
        logger.info("Password reset requested for unknown email")
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Reset a password using a valid reset token."""
    password_reset_service.reset_password(db, body.token, body.new_password)
    return MessageResponse(message="Password has been reset successfully.")
