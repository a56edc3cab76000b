"""Role and permission models for RBAC."""

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Table, func,
)
from sqlalchemy.orm import relationship
from rbac_admin.db.base import Base


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(Base):
    """Capability of the form ``resource.action``.

    ``name`` and the decomposed ``resource``/``action`` pair describe the same
    grant; the resolver accepts a match on either.
    """
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    resource = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Role(Base):
    """Named bucket of permissions. System roles cannot be renamed or deleted."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    is_system_role = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    permissions = relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.id",
    )
