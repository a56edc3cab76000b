"""Profile API router — the caller's own account."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rbac_admin.db.session import get_db
from rbac_admin.schemas.schemas import (
    UserOut, ProfileUpdate, UserUpdate, PasswordChangeRequest, MessageResponse,
)
from rbac_admin.services.auth_service import auth_service
from rbac_admin.services.user_service import user_service
from rbac_admin.core.access import Principal, require_authenticated
from rbac_admin.core.exceptions import InvalidCredentialsError, bad_request

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/", response_model=UserOut)
def get_profile(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_authenticated),
):
    """Get the current user's profile."""
    return auth_service.get_user(db, principal.user_id)


@router.put("/", response_model=UserOut)
def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_authenticated),
):
    """Update the current user's name, email or username."""
    return user_service.update_user(
        db, principal.user_id, UserUpdate(**body.model_dump(exclude_none=True)),
    )


@router.put("/password", response_model=MessageResponse)
def change_password(
    body: PasswordChangeRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_authenticated),
):
    """Change the current user's password."""
    try:
        auth_service.change_password(
            db, principal.user_id, body.current_password, body.new_password,
        )
    except InvalidCredentialsError as e:
        raise bad_request(e.message)
    return MessageResponse(message="Password updated successfully")
