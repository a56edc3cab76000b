"""User service — administrative user management."""

import logging
import math
from typing import List

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rbac_admin.core.exceptions import DuplicateIdentityError, NotFoundError
from rbac_admin.core.security import hash_password
from rbac_admin.models.role import Role
from rbac_admin.models.user import User
from rbac_admin.schemas.schemas import UserCreate, UserUpdate

logger = logging.getLogger("rbac_admin.users")

SORTABLE_COLUMNS = {
    "created_at": User.created_at,
    "email": User.email,
    "username": User.username,
    "first_name": User.first_name,
    "last_name": User.last_name,
    "last_login_at": User.last_login_at,
}


class UserService:
    """Handles user CRUD and activation state."""

    @staticmethod
    def list_users(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        """List users with case-insensitive search, sorting and pagination."""
        query = db.query(User)
        if search:
            term = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(User.first_name).like(term),
                func.lower(User.last_name).like(term),
                func.lower(User.email).like(term),
                func.lower(User.username).like(term),
            ))

        column = SORTABLE_COLUMNS.get(sort_by, User.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        total = query.count()
        users = (
            query.order_by(ordering, User.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "users": users,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _get_role(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise NotFoundError("Role not found")
        return role

    @staticmethod
    def _commit_unique(db: Session) -> None:
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateIdentityError("User with this email or username already exists")

    @staticmethod
    def create_user(db: Session, data: UserCreate) -> User:
        """Create a user with an explicit role."""
        existing = db.query(User).filter(
            or_(User.email == data.email, User.username == data.username)
        ).first()
        if existing:
            raise DuplicateIdentityError("User with this email or username already exists")

        role = UserService._get_role(db, data.role_id)
        user = User(
            email=data.email,
            username=data.username,
            hashed_password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role_id=role.id,
            is_active=True,
        )
        db.add(user)
        UserService._commit_unique(db)
        db.refresh(user)
        logger.info("Created user %s with role %s", user.id, role.name)
        return user

    @staticmethod
    def update_user(db: Session, user_id: int, data: UserUpdate) -> User:
        """Apply the fields set on ``data``; email and username stay unique."""
        user = UserService.get_user(db, user_id)

        if data.email and data.email != user.email:
            taken = db.query(User).filter(User.email == data.email, User.id != user_id).first()
            if taken:
                raise DuplicateIdentityError("User with this email already exists")
            user.email = data.email

        if data.username and data.username != user.username:
            taken = db.query(User).filter(User.username == data.username, User.id != user_id).first()
            if taken:
                raise DuplicateIdentityError("User with this username already exists")
            user.username = data.username

        if data.first_name:
            user.first_name = data.first_name
        if data.last_name:
            user.last_name = data.last_name
        if data.role_id:
            user.role_id = UserService._get_role(db, data.role_id).id
        if data.is_active is not None:
            user.is_active = data.is_active

        UserService._commit_unique(db)
        db.refresh(user)
        return user

    @staticmethod
    def set_active(db: Session, user_id: int, is_active: bool) -> User:
        user = UserService.get_user(db, user_id)
        user.is_active = is_active
        db.commit()
        db.refresh(user)
        logger.info("User %s %s", user_id, "activated" if is_active else "deactivated")
        return user

    @staticmethod
    def delete_user(db: Session, user_id: int) -> None:
        user = UserService.get_user(db, user_id)
        db.delete(user)
        db.commit()
        logger.info("Deleted user %s", user_id)

    @staticmethod
    def set_password(db: Session, user_id: int, new_password: str) -> None:
        """Set a user's password without the current one (administrative)."""
        user = UserService.get_user(db, user_id)
        user.hashed_password = hash_password(new_password)
        db.commit()
        logger.info("Password set for user %s", user_id)

    @staticmethod
    def bulk_action(db: Session, user_ids: List[int], action: str) -> int:
        """Activate, deactivate or delete many users at once."""
        if not user_ids:
            raise ValueError("No user IDs provided")

        query = db.query(User).filter(User.id.in_(user_ids))
        if action == "activate":
            affected = query.update({"is_active": True}, synchronize_session=False)
        elif action == "deactivate":
            affected = query.update({"is_active": False}, synchronize_session=False)
        elif action == "delete":
            affected = query.delete(synchronize_session=False)
        else:
            raise ValueError(f"Invalid action: {action}")
        db.commit()
        logger.info("Bulk %s applied to %d users", action, affected)
        return affected


user_service = UserService()
