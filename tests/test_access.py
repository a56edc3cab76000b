"""Tests for the request gates: authentication, permission and role checks."""

from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from rbac_admin.core.access import (
    Principal,
    RequirePermission,
    RequireRole,
    SelfOrPermission,
    require_authenticated,
)
from rbac_admin.core.security import token_service
from rbac_admin.db.session import get_db
from rbac_admin.models.role import Role


class SpyResolver:
    """Resolver stand-in that records whether it was consulted."""

    def __init__(self, allow: bool = True):
        self.allow = allow
        self.calls = []

    def check_permission(self, db, user_id, resource, action):
        self.calls.append((user_id, resource, action))
        return self.allow

    def has_role(self, db, user_id, role_name):
        self.calls.append((user_id, role_name))
        return self.allow


def build_app(session_factory, use_snapshot: bool, resolver=None) -> FastAPI:
    kwargs = {"use_snapshot": use_snapshot}
    if resolver is not None:
        kwargs["resolver"] = resolver

    app = FastAPI()

    @app.get("/me")
    def me(principal: Principal = Depends(require_authenticated)):
        return {"user_id": principal.user_id}

    @app.get("/users")
    def list_users(principal: Principal = Depends(RequirePermission("users", "read", **kwargs))):
        return {"ok": True}

    @app.delete("/users/{user_id}")
    def delete_user(user_id: int, principal: Principal = Depends(RequirePermission("users", "delete", **kwargs))):
        return {"ok": True}

    @app.put("/users/{user_id}")
    def update_user(user_id: int, principal: Principal = Depends(SelfOrPermission("users", "update", **kwargs))):
        return {"ok": True}

    @app.get("/admin")
    def admin_only(principal: Principal = Depends(RequireRole("Super Admin", "Admin", **kwargs))):
        return {"ok": True}

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def read_only_manager(db, make_user):
    """A Manager whose role grants only users.read."""
    manager = make_user(role_name="Manager")
    role = db.query(Role).filter(Role.name == "Manager").one()
    role.permissions = [p for p in role.permissions if p.name == "users.read"]
    db.commit()
    db.refresh(manager)
    return manager


@pytest.mark.parametrize("use_snapshot", [True, False], ids=["snapshot", "store"])
class TestGates:
    def test_permission_granted(self, session_factory, read_only_manager, auth_headers, use_snapshot):
        client = TestClient(build_app(session_factory, use_snapshot))
        response = client.get("/users", headers=auth_headers(read_only_manager))
        assert response.status_code == 200

    def test_permission_denied(self, session_factory, read_only_manager, make_user, auth_headers, use_snapshot):
        other = make_user()
        client = TestClient(build_app(session_factory, use_snapshot))
        response = client.delete(f"/users/{other.id}", headers=auth_headers(read_only_manager))
        assert response.status_code == 403

    def test_self_allowed_without_permission(self, session_factory, read_only_manager, auth_headers, use_snapshot):
        client = TestClient(build_app(session_factory, use_snapshot))
        response = client.put(f"/users/{read_only_manager.id}", headers=auth_headers(read_only_manager))
        assert response.status_code == 200

    def test_other_user_needs_permission(self, session_factory, read_only_manager, make_user, auth_headers, use_snapshot):
        other = make_user()
        client = TestClient(build_app(session_factory, use_snapshot))
        response = client.put(f"/users/{other.id}", headers=auth_headers(read_only_manager))
        assert response.status_code == 403

    def test_role_gate(self, session_factory, make_user, auth_headers, use_snapshot):
        client = TestClient(build_app(session_factory, use_snapshot))
        assert client.get("/admin", headers=auth_headers(make_user(role_name="Admin"))).status_code == 200
        assert client.get("/admin", headers=auth_headers(make_user(role_name="Manager"))).status_code == 403

    def test_unauthenticated_never_reaches_resolver(self, session_factory, use_snapshot):
        spy = SpyResolver()
        client = TestClient(build_app(session_factory, use_snapshot, resolver=spy))
        response = client.get("/users")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert spy.calls == []


class TestAuthentication:
    def test_missing_token(self, session_factory):
        client = TestClient(build_app(session_factory, True))
        assert client.get("/me").status_code == 401

    def test_valid_token(self, session_factory, make_user, auth_headers):
        user = make_user()
        client = TestClient(build_app(session_factory, True))
        response = client.get("/me", headers=auth_headers(user))
        assert response.json() == {"user_id": user.id}

    def test_refresh_token_rejected(self, session_factory, make_user):
        token, _ = token_service.issue_refresh_token(make_user())
        client = TestClient(build_app(session_factory, True))
        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_expired_token(self, session_factory, make_user):
        token, _ = token_service.issue_access_token(make_user(), expires_delta=timedelta(seconds=-5))
        client = TestClient(build_app(session_factory, True))
        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"


class TestSnapshotVersusStore:
    """Revoking a grant mid-session only shows through in store mode."""

    def _revoke_users_read(self, db):
        role = db.query(Role).filter(Role.name == "Manager").one()
        role.permissions = [p for p in role.permissions if p.name != "users.read"]
        db.commit()

    def test_snapshot_honours_token_until_expiry(self, db, session_factory, make_user, auth_headers):
        manager = make_user(role_name="Manager")
        headers = auth_headers(manager)
        self._revoke_users_read(db)
        client = TestClient(build_app(session_factory, use_snapshot=True))
        assert client.get("/users", headers=headers).status_code == 200

    def test_store_sees_revocation(self, db, session_factory, make_user, auth_headers):
        manager = make_user(role_name="Manager")
        headers = auth_headers(manager)
        self._revoke_users_read(db)
        client = TestClient(build_app(session_factory, use_snapshot=False))
        assert client.get("/users", headers=headers).status_code == 403

    def test_store_rejects_deleted_user(self, db, session_factory, make_user, auth_headers):
        user = make_user(role_name="Admin")
        headers = auth_headers(user)
        db.delete(user)
        db.commit()
        client = TestClient(build_app(session_factory, use_snapshot=False))
        assert client.get("/users", headers=headers).status_code == 401
