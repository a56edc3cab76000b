"""Role service — role CRUD and permission assignment."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rbac_admin.core.exceptions import (
    DuplicateIdentityError,
    NotFoundError,
    ProtectedRoleError,
    RoleInUseError,
)
from rbac_admin.models.role import Permission, Role
from rbac_admin.models.user import User

logger = logging.getLogger("rbac_admin.roles")


class RoleService:
    """Manages roles and the permissions granted to them."""

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.id).all()

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise NotFoundError("Role not found")
        return role

    @staticmethod
    def list_permissions(db: Session) -> List[Permission]:
        return db.query(Permission).order_by(Permission.resource, Permission.action).all()

    @staticmethod
    def _find_permissions(db: Session, permission_ids: List[int]) -> List[Permission]:
        """Load permissions by id; every requested id must exist."""
        wanted = set(permission_ids)
        if not wanted:
            return []
        permissions = db.query(Permission).filter(Permission.id.in_(wanted)).all()
        if len(permissions) != len(wanted):
            raise NotFoundError("Some permissions not found")
        return permissions

    @staticmethod
    def _commit_unique(db: Session) -> None:
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateIdentityError("Role with this name already exists")

    @staticmethod
    def create_role(
        db: Session,
        name: str,
        description: Optional[str] = None,
        permission_ids: Optional[List[int]] = None,
    ) -> Role:
        """Create a non-system role."""
        if db.query(Role).filter(Role.name == name).first():
            raise DuplicateIdentityError("Role with this name already exists")

        role = Role(name=name, description=description, is_system_role=False)
        if permission_ids:
            role.permissions = RoleService._find_permissions(db, permission_ids)
        db.add(role)
        RoleService._commit_unique(db)
        db.refresh(role)
        logger.info("Created role %s", role.name)
        return role

    @staticmethod
    def update_role(
        db: Session,
        role_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permission_ids: Optional[List[int]] = None,
    ) -> Role:
        """Update a role.

        System roles keep their name but their description and permissions
        may change. ``permission_ids=None`` leaves grants untouched; an empty
        list clears them.
        """
        role = RoleService.get_role(db, role_id)

        if name and name != role.name:
            if role.is_system_role:
                raise ProtectedRoleError("Cannot change system role name")
            taken = db.query(Role).filter(Role.name == name, Role.id != role_id).first()
            if taken:
                raise DuplicateIdentityError("Role with this name already exists")
            role.name = name

        if description:
            role.description = description

        if permission_ids is not None:
            role.permissions = RoleService._find_permissions(db, permission_ids)

        RoleService._commit_unique(db)
        db.refresh(role)
        return role

    @staticmethod
    def delete_role(db: Session, role_id: int) -> None:
        """Delete a custom role that no user holds."""
        role = RoleService.get_role(db, role_id)
        if role.is_system_role:
            raise ProtectedRoleError("Cannot delete system role")

        in_use = db.query(User).filter(User.role_id == role_id).count()
        if in_use:
            raise RoleInUseError("Cannot delete role that is assigned to users")

        role.permissions = []
        db.delete(role)
        db.commit()
        logger.info("Deleted role %s", role_id)

    @staticmethod
    def assign_permissions(db: Session, role_id: int, permission_ids: List[int]) -> Role:
        """Replace a role's permissions."""
        role = RoleService.get_role(db, role_id)
        role.permissions = RoleService._find_permissions(db, permission_ids)
        db.commit()
        db.refresh(role)
        return role

    @staticmethod
    def get_role_permissions(db: Session, role_id: int) -> List[Permission]:
        return list(RoleService.get_role(db, role_id).permissions)


role_service = RoleService()
