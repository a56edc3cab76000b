"""Shared fixtures: an in-memory database, seeded roles and an API client."""

import itertools
import os

# Settings are read at import time, so configure them before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DEBUG", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rbac_admin.models  # noqa: F401
from rbac_admin.core.security import hash_password, token_service
from rbac_admin.db.base import Base
from rbac_admin.db.seeds.seed_roles import seed_roles
from rbac_admin.db.session import get_db
from rbac_admin.models.role import Role
from rbac_admin.models.user import User

DEFAULT_PASSWORD = "Password123!"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def empty_db(session_factory):
    """A session on a database with tables but no seed data."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def db(empty_db):
    """A session on a database with the system roles seeded."""
    seed_roles(empty_db)
    return empty_db


@pytest.fixture
def get_role(db):
    def _get(name: str) -> Role:
        return db.query(Role).filter(Role.name == name).one()
    return _get


@pytest.fixture
def make_user(db, get_role):
    """Factory creating users directly in the database."""
    counter = itertools.count(1)

    def _make(
        role_name: str = "User",
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
        email: str = None,
        username: str = None,
    ) -> User:
        n = next(counter)
        user = User(
            email=email or f"user{n}@acme.io",
            username=username or f"user{n}",
            hashed_password=hash_password(password),
            first_name="Test",
            last_name=f"User{n}",
            role_id=get_role(role_name).id,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def client(db, session_factory):
    """TestClient whose requests use the test database."""
    from rbac_admin.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build a bearer header carrying a fresh access token for a user."""
    def _headers(user: User) -> dict:
        token, _ = token_service.issue_access_token(user)
        return {"Authorization": f"Bearer {token}"}
    return _headers
