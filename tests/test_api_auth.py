"""HTTP tests for /api/auth and /api/profile."""

from rbac_admin.core.security import verify_password
from rbac_admin.models.password_reset import PasswordResetToken
from rbac_admin.models.user import User

PASSWORD = "Password123!"


def register(client, email="alice@acme.io", username="alice"):
    return client.post("/api/auth/register", json={
        "email": email,
        "username": username,
        "password": PASSWORD,
        "first_name": "Alice",
        "last_name": "Liddell",
    })


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_request_id_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-Id": "abc-123"})
        assert response.headers["X-Request-Id"] == "abc-123"
        assert "X-Response-Time-Ms" in response.headers


class TestRegisterAndLogin:
    def test_register(self, client):
        response = register(client)
        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["role"]["name"] == "User"
        assert "hashed_password" not in body["user"]

    def test_register_duplicate(self, client):
        register(client)
        response = register(client, username="alice2")
        assert response.status_code == 409

    def test_register_short_password(self, client):
        response = client.post("/api/auth/register", json={
            "email": "bob@acme.io", "username": "bob", "password": "short",
            "first_name": "Bob", "last_name": "Builder",
        })
        assert response.status_code == 422

    def test_login(self, client, make_user):
        user = make_user()
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == user.id

    def test_login_failures_are_indistinguishable(self, client, make_user):
        user = make_user()
        wrong = client.post("/api/auth/login", json={"email": user.email, "password": "nope"})
        unknown = client.post("/api/auth/login", json={"email": "ghost@acme.io", "password": "nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_login_deactivated(self, client, make_user):
        user = make_user(is_active=False)
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 403


class TestRefreshAndLogout:
    def test_refresh(self, client):
        tokens = register(client).json()
        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_refresh_with_access_token(self, client):
        tokens = register(client).json()
        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401

    def test_refresh_garbage(self, client):
        response = client.post("/api/auth/refresh", json={"refresh_token": "garbage"})
        assert response.status_code == 401

    def test_logout_requires_token(self, client):
        assert client.post("/api/auth/logout").status_code == 401

    def test_logout(self, client):
        tokens = register(client).json()
        response = client.post(
            "/api/auth/logout",
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        assert response.status_code == 200


class TestPasswordReset:
    def test_forgot_password_does_not_reveal_accounts(self, client, make_user):
        user = make_user()
        known = client.post("/api/auth/forgot-password", json={"email": user.email})
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@acme.io"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_reset_flow(self, client, db, make_user):
        user = make_user()
        client.post("/api/auth/forgot-password", json={"email": user.email})
        token = db.query(PasswordResetToken).filter(
            PasswordResetToken.user_id == user.id
        ).one().token

        response = client.post("/api/auth/reset-password", json={
            "token": token, "new_password": "Another-Pass-1",
        })
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": user.email, "password": "Another-Pass-1"})
        assert login.status_code == 200

        reuse = client.post("/api/auth/reset-password", json={
            "token": token, "new_password": "Third-Pass-22",
        })
        assert reuse.status_code == 400

    def test_reset_unknown_token(self, client):
        response = client.post("/api/auth/reset-password", json={
            "token": "deadbeef", "new_password": "Another-Pass-1",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or expired token"


class TestProfile:
    def test_get_profile(self, client, make_user, auth_headers):
        user = make_user()
        response = client.get("/api/profile/", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["email"] == user.email

    def test_update_profile(self, client, db, make_user, auth_headers):
        user = make_user()
        response = client.put(
            "/api/profile/", json={"first_name": "Renamed"}, headers=auth_headers(user),
        )
        assert response.status_code == 200
        assert response.json()["first_name"] == "Renamed"

    def test_profile_cannot_take_existing_email(self, client, make_user, auth_headers):
        user = make_user()
        other = make_user()
        response = client.put(
            "/api/profile/", json={"email": other.email}, headers=auth_headers(user),
        )
        assert response.status_code == 409

    def test_change_password(self, client, db, make_user, auth_headers):
        user = make_user()
        response = client.put(
            "/api/profile/password",
            json={"current_password": PASSWORD, "new_password": "Changed-Pass-1"},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        db.expire_all()
        stored = db.query(User).filter(User.id == user.id).one()
        assert verify_password("Changed-Pass-1", stored.hashed_password)

    def test_change_password_wrong_current(self, client, make_user, auth_headers):
        user = make_user()
        response = client.put(
            "/api/profile/password",
            json={"current_password": "wrong", "new_password": "Changed-Pass-1"},
            headers=auth_headers(user),
        )
        assert response.status_code == 400
