"""RBAC engine — permission resolution and role hierarchy."""

from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from rbac_admin.core.config import settings
from rbac_admin.core.exceptions import NotFoundError
from rbac_admin.models.role import Permission, Role
from rbac_admin.models.user import User


def permission_matches(permissions: Iterable, resource: str, action: str) -> bool:
    """Return True if any permission grants ``resource.action``.

    Matches on the composite name or on the decomposed (resource, action)
    pair, so grants created under either convention are honoured. Works on
    ORM permissions and on token-embedded grants alike.
    """
    required = f"{resource}.{action}"
    for permission in permissions:
        if permission.name == required:
            return True
        if permission.resource == resource and permission.action == action:
            return True
    return False


class RoleHierarchy:
    """Immutable rank table over a closed set of role names."""

    def __init__(self, ranks: Mapping[str, int]):
        self._ranks = MappingProxyType(dict(ranks))

    @property
    def ranks(self) -> Mapping[str, int]:
        return self._ranks

    def rank(self, role_name: Optional[str]) -> Optional[int]:
        if role_name is None:
            return None
        return self._ranks.get(role_name)

    def outranks(self, manager_role: Optional[str], target_role: Optional[str]) -> bool:
        """Strict comparison; an unranked role never outranks or is outranked."""
        manager_rank = self.rank(manager_role)
        target_rank = self.rank(target_role)
        if manager_rank is None or target_rank is None:
            return False
        return manager_rank > target_rank

    def can_assign(self, assigner_role: Optional[str], role_name: Optional[str]) -> bool:
        """Whether a holder of ``assigner_role`` may grant ``role_name``.

        Ranked roles must sit strictly below the assigner. Custom roles outside
        the rank table may only be granted by the highest-ranked role.
        """
        assigner_rank = self.rank(assigner_role)
        if assigner_rank is None or role_name is None:
            return False
        role_rank = self.rank(role_name)
        if role_rank is None:
            return assigner_rank == max(self._ranks.values())
        return assigner_rank > role_rank


class PermissionResolver:
    """Answers "may this user do X on Y" and "may user A manage user B"."""

    def __init__(self, hierarchy: RoleHierarchy):
        self.hierarchy = hierarchy

    @staticmethod
    def _load_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def get_user_role(self, db: Session, user_id: int) -> Optional[Role]:
        return self._load_user(db, user_id).role

    def get_user_permissions(self, db: Session, user_id: int) -> List[Permission]:
        role = self.get_user_role(db, user_id)
        return list(role.permissions) if role else []

    def check_permission(self, db: Session, user_id: int, resource: str, action: str) -> bool:
        """Check whether the user's role grants ``resource.action``.

        Raises:
            NotFoundError: If the user does not exist.
        """
        return permission_matches(self.get_user_permissions(db, user_id), resource, action)

    def has_role(self, db: Session, user_id: int, role_name: str) -> bool:
        role = self.get_user_role(db, user_id)
        return role is not None and role.name == role_name

    def can_manage_user(self, db: Session, manager_id: int, target_id: int) -> bool:
        """Whether the manager's role strictly outranks the target's.

        There is no self-exception here; callers that allow users to act on
        themselves must compare ids before calling.
        """
        manager_role = self.get_user_role(db, manager_id)
        target_role = self.get_user_role(db, target_id)
        return self.hierarchy.outranks(
            manager_role.name if manager_role else None,
            target_role.name if target_role else None,
        )

    def can_assign_role(self, db: Session, user_id: int, role_name: str) -> bool:
        """Whether the user may give ``role_name`` to someone else."""
        role = self.get_user_role(db, user_id)
        return self.hierarchy.can_assign(role.name if role else None, role_name)


permission_resolver = PermissionResolver(RoleHierarchy(settings.ROLE_HIERARCHY))
