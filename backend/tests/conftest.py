"""
Shared fixtures: an in-memory database seeded with the default roles,
permissions and features, and a TestClient wired to it.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from todo_api.core.auth import _sessions, create_session
from todo_api.core.config import SESSION_COOKIE_NAME
from todo_api.core.database import get_db, init_db
from todo_api.main import app
from todo_api.services.clock import FixedClock
from todo_api.services.seed import seed_default_data
from todo_api.services.users import register_user

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_default_data(session)
    yield session
    session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def client(db, session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    _sessions.clear()


@pytest.fixture
def make_user(db):
    def _make_user(email: str, roles=None, password: str = "secret123"):
        return register_user(db, email, password, full_name=email.split("@")[0], role_names=roles)
    return _make_user


@pytest.fixture
def user(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", roles=["Admin"])


@pytest.fixture
def login(client):
    """Put a session cookie for a user on the client, replacing any previous one."""
    def _login(user) -> str:
        token = create_session(user.id, user.email, user.role_names, user.permission_names)
        client.cookies.clear()
        client.cookies.set(SESSION_COOKIE_NAME, token)
        return token
    return _login
