"""Roles and permissions API routers."""

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rbac_admin.db.session import get_db
from rbac_admin.schemas.schemas import (
    RoleOut, RoleCreate, RoleUpdate, PermissionOut, PermissionAssignRequest,
    MessageResponse,
)
from rbac_admin.services.role_service import role_service
from rbac_admin.services.activity_service import activity_service
from rbac_admin.core.access import Principal, RequirePermission, require_super_admin

router = APIRouter(prefix="/roles", tags=["roles"])
permissions_router = APIRouter(prefix="/permissions", tags=["roles"])


@router.get("/", response_model=List[RoleOut])
def list_roles(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("roles", "read")),
):
    """List all roles with their permissions."""
    return role_service.list_roles(db)


@router.post("/", response_model=RoleOut, status_code=201)
def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
):
    """Create a custom role (Super Admin only)."""
    role = role_service.create_role(db, body.name, body.description, body.permission_ids)
    activity_service.log_from_request(
        db, request, principal.user_id, "role.created", "roles",
        details=f"Created role {body.name}",
    )
    return role


@router.get("/{role_id}", response_model=RoleOut)
def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("roles", "read")),
):
    return role_service.get_role(db, role_id)


@router.put("/{role_id}", response_model=RoleOut)
def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
):
    """Update a role. System roles cannot be renamed."""
    role = role_service.update_role(
        db, role_id, body.name, body.description, body.permission_ids,
    )
    activity_service.log_from_request(
        db, request, principal.user_id, "role.updated", "roles",
        details=f"Updated role {role_id}",
    )
    return role


@router.delete("/{role_id}", response_model=MessageResponse)
def delete_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
):
    """Delete an unused custom role."""
    role_service.delete_role(db, role_id)
    activity_service.log_from_request(
        db, request, principal.user_id, "role.deleted", "roles",
        details=f"Deleted role {role_id}",
    )
    return MessageResponse(message="Role deleted successfully")


@router.put("/{role_id}/permissions", response_model=RoleOut)
def assign_permissions(
    role_id: int,
    body: PermissionAssignRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
):
    """Replace the permissions granted to a role."""
    role = role_service.assign_permissions(db, role_id, body.permission_ids)
    activity_service.log_from_request(
        db, request, principal.user_id, "role.permissions_assigned", "roles",
        details=f"Assigned {len(body.permission_ids)} permissions to role {role_id}",
    )
    return role


@router.get("/{role_id}/permissions", response_model=List[PermissionOut])
def get_role_permissions(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("permissions", "read")),
):
    return role_service.get_role_permissions(db, role_id)


@permissions_router.get("/", response_model=List[PermissionOut])
def list_permissions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("permissions", "read")),
):
    """List every permission known to the system."""
    return role_service.list_permissions(db)
