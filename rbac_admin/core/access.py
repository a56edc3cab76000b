"""Request gating: authentication and RBAC authorization dependencies.

Every gate depends on ``require_authenticated``, so a request is always
authenticated before any permission or role check runs.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from rbac_admin.core.config import settings
from rbac_admin.core.exceptions import AuthError, NotFoundError, forbidden, unauthorized
from rbac_admin.core.security import PermissionGrant, TokenClaims, token_service
from rbac_admin.db.session import get_db
from rbac_admin.services.rbac_service import (
    PermissionResolver,
    permission_matches,
    permission_resolver,
)

logger = logging.getLogger("rbac_admin.access")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    """The authenticated caller, as resolved from a validated access token."""
    user_id: int
    role: Optional[str] = None
    permissions: List[PermissionGrant] = field(default_factory=list)
    claims: Optional[TokenClaims] = None


async def require_authenticated(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Principal:
    """Validate the bearer access token and attach the caller to the request."""
    if credentials is None:
        raise unauthorized("Not authenticated")
    try:
        claims = token_service.validate_access_token(credentials.credentials)
    except AuthError as e:
        raise unauthorized(e.message)

    principal = Principal(
        user_id=claims.user_id,
        role=claims.role,
        permissions=claims.permissions,
        claims=claims,
    )
    request.state.principal = principal
    return principal


class _Gate:
    """Shared decision source for the authorization dependencies.

    With ``use_snapshot`` the role and permissions embedded in the access
    token decide; otherwise the role is reloaded through the resolver.
    """

    def __init__(
        self,
        resolver: PermissionResolver = permission_resolver,
        use_snapshot: Optional[bool] = None,
    ):
        self.resolver = resolver
        self.use_snapshot = use_snapshot

    def _snapshot(self) -> bool:
        if self.use_snapshot is None:
            return settings.AUTHZ_USE_TOKEN_SNAPSHOT
        return self.use_snapshot

    def has_permission(self, db: Session, principal: Principal, resource: str, action: str) -> bool:
        if self._snapshot():
            return permission_matches(principal.permissions, resource, action)
        try:
            return self.resolver.check_permission(db, principal.user_id, resource, action)
        except NotFoundError:
            raise unauthorized("User not found")

    def has_any_role(self, db: Session, principal: Principal, role_names) -> bool:
        if self._snapshot():
            return principal.role in role_names
        try:
            return any(self.resolver.has_role(db, principal.user_id, name) for name in role_names)
        except NotFoundError:
            raise unauthorized("User not found")


class RequirePermission(_Gate):
    """Dependency that requires ``resource.action`` on the caller's role."""

    def __init__(self, resource: str, action: str, **kwargs):
        super().__init__(**kwargs)
        self.resource = resource
        self.action = action

    def __call__(
        self,
        principal: Principal = Depends(require_authenticated),
        db: Session = Depends(get_db),
    ) -> Principal:
        if not self.has_permission(db, principal, self.resource, self.action):
            logger.info(
                "User %s denied %s.%s", principal.user_id, self.resource, self.action
            )
            raise forbidden("Insufficient permissions")
        return principal


class RequireRole(_Gate):
    """Dependency that requires any one of the given role names."""

    def __init__(self, *role_names: str, **kwargs):
        super().__init__(**kwargs)
        self.role_names = tuple(role_names)

    def __call__(
        self,
        principal: Principal = Depends(require_authenticated),
        db: Session = Depends(get_db),
    ) -> Principal:
        if not self.has_any_role(db, principal, self.role_names):
            logger.info(
                "User %s denied: requires one of %s", principal.user_id, self.role_names
            )
            raise forbidden("Insufficient role")
        return principal


class SelfOrPermission(_Gate):
    """Dependency that lets users act on themselves, or others with a permission.

    The target is the path parameter named ``param``.
    """

    def __init__(self, resource: str, action: str, param: str = "user_id", **kwargs):
        super().__init__(**kwargs)
        self.resource = resource
        self.action = action
        self.param = param

    def __call__(
        self,
        request: Request,
        principal: Principal = Depends(require_authenticated),
        db: Session = Depends(get_db),
    ) -> Principal:
        if is_self(request.path_params.get(self.param), principal):
            return principal
        if not self.has_permission(db, principal, self.resource, self.action):
            logger.info(
                "User %s denied %s.%s on another user",
                principal.user_id, self.resource, self.action,
            )
            raise forbidden("Insufficient permissions")
        return principal


def is_self(target_id, principal: Principal) -> bool:
    """Whether a path-addressed user id is the caller's own id."""
    try:
        return target_id is not None and int(target_id) == principal.user_id
    except (TypeError, ValueError):
        return False


# Convenience dependency factories
require_super_admin = RequireRole("Super Admin")
require_admin = RequireRole("Super Admin", "Admin")
