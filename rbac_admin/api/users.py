"""Users API router — administrative user management."""

import math

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rbac_admin.db.session import get_db
from rbac_admin.schemas.schemas import (
    UserOut, UserCreate, UserUpdate, UserListResponse, BulkActionRequest,
    ActivityLogOut, ActivityLogListResponse, MessageResponse, UserPasswordUpdate,
)
from rbac_admin.services.user_service import user_service
from rbac_admin.services.auth_service import auth_service
from rbac_admin.services.role_service import role_service
from rbac_admin.services.activity_service import activity_service
from rbac_admin.services.rbac_service import permission_resolver
from rbac_admin.core.access import (
    Principal, RequirePermission, SelfOrPermission, require_super_admin,
)
from rbac_admin.core.exceptions import InvalidCredentialsError, bad_request, forbidden

router = APIRouter(prefix="/users", tags=["users"])


def _ensure_can_manage(db: Session, principal: Principal, user_id: int, detail: str) -> None:
    """Acting on another user requires strictly outranking them."""
    if principal.user_id == user_id:
        return
    if not permission_resolver.can_manage_user(db, principal.user_id, user_id):
        raise forbidden(detail)


def _ensure_can_assign_role(db: Session, principal: Principal, role_id: int) -> None:
    """Only roles ranked below the caller's own may be handed out."""
    role = role_service.get_role(db, role_id)
    if not permission_resolver.can_assign_role(db, principal.user_id, role.name):
        raise forbidden("Cannot assign this role")


@router.get("/", response_model=UserListResponse)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query(""),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("users", "read")),
):
    """List users with search and pagination."""
    return user_service.list_users(db, page, limit, search, sort_by, sort_order)


@router.post("/", response_model=UserOut, status_code=201)
def create_user(
    body: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("users", "create")),
):
    """Create a user with an explicit role."""
    _ensure_can_assign_role(db, principal, body.role_id)
    user = user_service.create_user(db, body)
    activity_service.log_from_request(
        db, request, principal.user_id, "user.created", "users",
        details=f"Created user {user.id}",
    )
    return user


@router.post("/bulk-actions", response_model=MessageResponse)
def bulk_actions(
    body: BulkActionRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
):
    """Activate, deactivate or delete many users (Super Admin only)."""
    if body.action != "activate" and principal.user_id in body.user_ids:
        raise bad_request(f"Cannot {body.action} your own account")
    affected = user_service.bulk_action(db, body.user_ids, body.action)
    activity_service.log_from_request(
        db, request, principal.user_id, f"user.bulk_{body.action}", "users",
        details=f"{affected} users affected",
    )
    return MessageResponse(message="Bulk action completed successfully", detail={"affected": affected})


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(SelfOrPermission("users", "read")),
):
    """Get a user — yourself, or anyone with users.read."""
    return user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(SelfOrPermission("users", "update")),
):
    """Update a user — yourself, or a lower-ranked user with users.update."""
    if principal.user_id == user_id and (body.role_id is not None or body.is_active is not None):
        raise forbidden("Cannot change your own role or status")
    _ensure_can_manage(db, principal, user_id, "Cannot manage this user")
    if body.role_id is not None:
        _ensure_can_assign_role(db, principal, body.role_id)
    user = user_service.update_user(db, user_id, body)
    activity_service.log_from_request(
        db, request, principal.user_id, "user.updated", "users",
        details=f"Updated user {user_id}",
    )
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("users", "delete")),
):
    """Delete a lower-ranked user."""
    if principal.user_id == user_id:
        raise bad_request("Cannot delete your own account")
    _ensure_can_manage(db, principal, user_id, "Cannot delete this user")
    user_service.delete_user(db, user_id)
    activity_service.log_from_request(
        db, request, principal.user_id, "user.deleted", "users",
        details=f"Deleted user {user_id}",
    )
    return MessageResponse(message="User deleted successfully")


@router.put("/{user_id}/activate", response_model=UserOut)
def activate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("users", "update")),
):
    """Re-enable a lower-ranked user's account."""
    _ensure_can_manage(db, principal, user_id, "Cannot manage this user")
    user = user_service.set_active(db, user_id, True)
    activity_service.log_from_request(
        db, request, principal.user_id, "user.activated", "users",
        details=f"Activated user {user_id}",
    )
    return user


@router.put("/{user_id}/deactivate", response_model=UserOut)
def deactivate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("users", "update")),
):
    """Disable a lower-ranked user's account."""
    if principal.user_id == user_id:
        raise bad_request("Cannot deactivate your own account")
    _ensure_can_manage(db, principal, user_id, "Cannot manage this user")
    user = user_service.set_active(db, user_id, False)
    activity_service.log_from_request(
        db, request, principal.user_id, "user.deactivated", "users",
        details=f"Deactivated user {user_id}",
    )
    return user


@router.put("/{user_id}/password", response_model=MessageResponse)
def update_password(
    user_id: int,
    body: UserPasswordUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(SelfOrPermission("users", "update")),
):
    """Set a user's password.

    Your own password needs the current one; a lower-ranked user's does not.
    """
    if principal.user_id == user_id:
        if not body.current_password:
            raise bad_request("Current password is required")
        try:
            auth_service.change_password(db, user_id, body.current_password, body.new_password)
        except InvalidCredentialsError as e:
            raise bad_request(e.message)
    else:
        _ensure_can_manage(db, principal, user_id, "Cannot update this user's password")
        user_service.set_password(db, user_id, body.new_password)
    activity_service.log_from_request(
        db, request, principal.user_id, "user.password_updated", "users",
        details=f"Updated password of user {user_id}",
    )
    return MessageResponse(message="Password updated successfully")


@router.get("/{user_id}/activity", response_model=ActivityLogListResponse)
def get_user_activity(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(SelfOrPermission("activity_logs", "read")),
):
    """Activity history for a user — yourself, or anyone with activity_logs.read."""
    result = activity_service.query_logs(
        db, user_id=user_id, action=action, page=page, page_size=limit,
    )
    total = result["total"]
    return ActivityLogListResponse(
        activities=[ActivityLogOut.model_validate(log) for log in result["activities"]],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )
