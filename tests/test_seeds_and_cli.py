"""Tests for seed data and the rbacctl command line."""

from typer.testing import CliRunner

from rbac_admin.cli import app
from rbac_admin.core.config import settings
from rbac_admin.core.security import verify_password
from rbac_admin.db.seeds.seed_roles import PERMISSIONS, ROLES, seed_roles
from rbac_admin.db.seeds.seed_super_admin import seed_super_admin
from rbac_admin.models.role import Permission, Role
from rbac_admin.models.user import User


class TestSeedRoles:
    def test_roles_match_hierarchy(self):
        assert {r["name"] for r in ROLES} == set(settings.ROLE_HIERARCHY)

    def test_seeds_are_idempotent(self, db):
        seed_roles(db)
        assert db.query(Permission).count() == len(PERMISSIONS)
        assert db.query(Role).count() == len(ROLES)

    def test_system_roles_flagged(self, db):
        assert all(role.is_system_role for role in db.query(Role).all())

    def test_super_admin_has_everything(self, get_role):
        assert len(get_role("Super Admin").permissions) == len(PERMISSIONS)


class TestSeedSuperAdmin:
    def test_creates_once(self, db):
        admin = seed_super_admin(db)
        assert admin.role.name == "Super Admin"
        assert verify_password(settings.SUPER_ADMIN_PASSWORD, admin.hashed_password)

        again = seed_super_admin(db)
        assert again.id == admin.id
        assert db.query(User).count() == 1

    def test_requires_roles(self, empty_db):
        assert seed_super_admin(empty_db) is None
        assert empty_db.query(User).count() == 0


class TestCli:
    def test_create_seed_and_purge(self):
        runner = CliRunner()

        result = runner.invoke(app, ["db", "create"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["db", "seed"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["tokens", "purge-expired"])
        assert result.exit_code == 0, result.output
        assert "Removed 0 expired reset tokens" in result.output

    def test_drop_needs_confirmation(self):
        result = CliRunner().invoke(app, ["db", "drop"], input="n\n")
        assert result.exit_code != 0
