"""Seed the super-admin user from env vars."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from rbac_admin.core.config import settings
from rbac_admin.core.security import hash_password
from rbac_admin.models.role import Role
from rbac_admin.models.user import User

logger = logging.getLogger("rbac_admin.seeds")


def seed_super_admin(db: Session) -> Optional[User]:
    """Create the super-admin user if not already present.

    Returns the super-admin, or None when the role hasn't been seeded.
    """
    super_admin_role = db.query(Role).filter(Role.name == "Super Admin").first()
    if not super_admin_role:
        logger.warning("Super Admin role not found. Run seed_roles first.")
        return None

    existing = db.query(User).filter(
        (User.email == settings.SUPER_ADMIN_EMAIL)
        | (User.username == settings.SUPER_ADMIN_USERNAME)
    ).first()
    if existing:
        logger.info("Super admin '%s' already exists, skipping.", existing.email)
        return existing

    if settings.SUPER_ADMIN_PASSWORD == "changeme123":
        logger.warning("Seeding super admin with the default password; change it after first login")

    admin = User(
        email=settings.SUPER_ADMIN_EMAIL,
        username=settings.SUPER_ADMIN_USERNAME,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD),
        first_name="Super",
        last_name="Admin",
        is_active=True,
        role_id=super_admin_role.id,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Created super admin: %s", settings.SUPER_ADMIN_EMAIL)
    return admin
