"""Models package — import all models so metadata.create_all can discover them."""

from rbac_admin.models.role import Role, Permission, role_permissions
from rbac_admin.models.user import User
from rbac_admin.models.activity_log import ActivityLog
from rbac_admin.models.password_reset import PasswordResetToken

__all__ = [
    "Role", "Permission", "role_permissions", "User",
    "ActivityLog", "PasswordResetToken",
]
