"""Tests for single-use, time-limited password reset tokens."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from rbac_admin.core.exceptions import InvalidResetTokenError, NotFoundError
from rbac_admin.core.security import verify_password
from rbac_admin.db.base import utcnow
from rbac_admin.models.password_reset import PasswordResetToken
from rbac_admin.services.password_service import PasswordResetService

NEW_PASSWORD = "Reset-Pass-789"


@pytest.fixture
def service():
    return PasswordResetService(token_ttl=timedelta(minutes=60))


class TestCreateResetToken:
    def test_token_is_random_hex(self, db, service, make_user):
        user = make_user()
        first = service.create_reset_token(db, user.email)
        second = service.create_reset_token(db, user.email)

        assert len(first) == 64
        int(first, 16)
        assert first != second
        assert db.query(PasswordResetToken).filter(
            PasswordResetToken.user_id == user.id
        ).count() == 2

    def test_expiry_uses_ttl(self, db, service, make_user):
        user = make_user()
        before = utcnow()
        token = service.create_reset_token(db, user.email)
        row = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).one()
        assert before + timedelta(minutes=59) < row.expires_at <= utcnow() + timedelta(minutes=60)

    def test_unknown_email(self, db, service):
        with pytest.raises(NotFoundError):
            service.create_reset_token(db, "nobody@acme.io")


class TestResetPassword:
    def test_token_is_single_use(self, db, service, make_user):
        user = make_user()
        token = service.create_reset_token(db, user.email)

        service.reset_password(db, token, NEW_PASSWORD)
        db.refresh(user)
        assert verify_password(NEW_PASSWORD, user.hashed_password)

        with pytest.raises(InvalidResetTokenError):
            service.reset_password(db, token, "Another-Pass-000")

    def test_expired_token(self, db, service, make_user):
        user = make_user()
        token = service.create_reset_token(db, user.email)
        row = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).one()
        row.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()

        with pytest.raises(InvalidResetTokenError):
            service.reset_password(db, token, NEW_PASSWORD)

    def test_unknown_token(self, db, service):
        with pytest.raises(InvalidResetTokenError) as exc_info:
            service.reset_password(db, "deadbeef", NEW_PASSWORD)
        assert exc_info.value.message == "Invalid or expired token"

    def test_cleanup_failure_keeps_new_password(self, db, service, make_user, monkeypatch, caplog):
        user = make_user()
        token = service.create_reset_token(db, user.email)

        def broken_delete(instance):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(db, "delete", broken_delete)
        service.reset_password(db, token, NEW_PASSWORD)

        db.refresh(user)
        assert verify_password(NEW_PASSWORD, user.hashed_password)
        assert "Failed to delete used reset token" in caplog.text


class TestPurgeExpiredTokens:
    def test_removes_only_expired(self, db, service, make_user):
        user = make_user()
        live = service.create_reset_token(db, user.email)
        stale = service.create_reset_token(db, user.email)
        row = db.query(PasswordResetToken).filter(PasswordResetToken.token == stale).one()
        row.expires_at = utcnow() - timedelta(seconds=1)
        db.commit()

        assert service.purge_expired_tokens(db) == 1
        remaining = [t.token for t in db.query(PasswordResetToken).all()]
        assert remaining == [live]


class TestResetPasswordTransaction:
    """The token is consumed in the same commit as the password change."""

    def _counting_commit(self, db, monkeypatch, fail_first=False):
        real_commit = db.commit
        calls = []

        def commit():
            calls.append(1)
            if fail_first and len(calls) == 1:
                raise SQLAlchemyError("deadlock detected")
            real_commit()

        monkeypatch.setattr(db, "commit", commit)
        return calls

    def test_single_commit(self, db, service, make_user, monkeypatch):
        user = make_user()
        token = service.create_reset_token(db, user.email)
        calls = self._counting_commit(db, monkeypatch)

        service.reset_password(db, token, NEW_PASSWORD)

        assert len(calls) == 1
        assert db.query(PasswordResetToken).count() == 0
        db.refresh(user)
        assert verify_password(NEW_PASSWORD, user.hashed_password)

    def test_failed_commit_still_changes_password(self, db, service, make_user, monkeypatch, caplog):
        user = make_user()
        token = service.create_reset_token(db, user.email)
        calls = self._counting_commit(db, monkeypatch, fail_first=True)

        service.reset_password(db, token, NEW_PASSWORD)

        assert len(calls) == 2
        db.refresh(user)
        assert verify_password(NEW_PASSWORD, user.hashed_password)
        assert "Failed to delete used reset token" in caplog.text
