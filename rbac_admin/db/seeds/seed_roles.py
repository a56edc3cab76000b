"""Seed permissions and the system roles into the database."""

import logging
from sqlalchemy.orm import Session
from rbac_admin.models.role import Permission, Role

logger = logging.getLogger("rbac_admin.seeds")

PERMISSIONS = [
    ("users", "create", "Create users"),
    ("users", "read", "View users"),
    ("users", "update", "Edit, activate and deactivate users"),
    ("users", "delete", "Delete users"),
    ("roles", "create", "Create roles"),
    ("roles", "read", "View roles"),
    ("roles", "update", "Edit roles"),
    ("roles", "delete", "Delete roles"),
    ("permissions", "read", "View permissions"),
    ("dashboard", "read", "View the dashboard"),
    ("activity_logs", "read", "View activity logs"),
]

# Names must stay in lockstep with settings.ROLE_HIERARCHY.
ROLES = [
    {
        "name": "Super Admin",
        "description": "Full system access",
        "permissions": [f"{resource}.{action}" for resource, action, _ in PERMISSIONS],
    },
    {
        "name": "Admin",
        "description": "Manage users and view roles",
        "permissions": [
            "users.create", "users.read", "users.update", "users.delete",
            "roles.read", "permissions.read", "dashboard.read", "activity_logs.read",
        ],
    },
    {
        "name": "Manager",
        "description": "View and edit users",
        "permissions": [
            "users.read", "users.update", "dashboard.read", "activity_logs.read",
        ],
    },
    {
        "name": "User",
        "description": "Default role for registered users",
        "permissions": ["dashboard.read"],
    },
]


def seed_permissions(db: Session) -> dict:
    """Insert missing permissions; return all of them keyed by name."""
    existing = {p.name: p for p in db.query(Permission).all()}
    for resource, action, description in PERMISSIONS:
        name = f"{resource}.{action}"
        if name not in existing:
            permission = Permission(
                name=name, resource=resource, action=action, description=description,
            )
            db.add(permission)
            existing[name] = permission
    db.flush()
    return existing


def seed_roles(db: Session) -> None:
    """Insert the system roles and their grants if they don't already exist."""
    permissions = seed_permissions(db)

    for role_data in ROLES:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if existing:
            continue
        db.add(Role(
            name=role_data["name"],
            description=role_data["description"],
            is_system_role=True,
            permissions=[permissions[name] for name in role_data["permissions"]],
        ))

    db.commit()
    logger.info("Seeded %d permissions and %d roles", len(PERMISSIONS), len(ROLES))
