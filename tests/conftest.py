"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src import models  # noqa: F401
from src.database import Base, get_db, get_session_factory
from src.main import app
from src.services.realtime import reset_realtime


class AuthHeaders(dict):
    """Dict subclass that also stores the user's id, email and raw token."""

    def __init__(
        self,
        *args,
        user_id: int | None = None,
        email: str | None = None,
        token: str | None = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email
        self.token = token


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/shared_lists", "/shared_lists_test"
    )
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(autouse=True)
def fresh_realtime():
    """Every test starts with an empty connection hub."""
    reset_realtime()
    yield
    reset_realtime()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override.

    Used as a context manager so the lifespan runs and HTTP requests share one event
    loop with the WebSocket sessions.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def live_client():
    """Test client without dependency overrides.

    Requests and sockets open and close their own sessions, as in production, but bound
    to the test database.
    """
    with patch("src.database.SessionLocal", TestingSessionLocal), TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def checked_out_connections():
    """Number of test-database connections currently held by sessions."""
    return engine.pool.checkedout


def register(client, username: str) -> AuthHeaders:
    """Register a user and return auth headers carrying their id."""
    email = f"{username}@example.com"
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "username": username, "password": "testpass123"},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    token = data["access_token"]
    return AuthHeaders(
        {"Authorization": f"Bearer {token}"},
        user_id=data["user"]["id"],
        email=email,
        token=token,
    )


@pytest.fixture
def auth_headers(client):
    """Create a user and return auth headers with user info."""
    return register(client, "alice")


@pytest.fixture
def other_headers(client):
    """A second, unrelated user."""
    return register(client, "bob")


@pytest.fixture
def third_headers(client):
    return register(client, "carol")


@pytest.fixture
def make_list(client):
    """Create a list for a user and return its JSON body."""

    def _make(headers: AuthHeaders, name: str = "Groceries") -> dict:
        response = client.post("/api/v1/lists", headers=headers, json={"name": name})
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def share_accepted(client):
    """Share a list with a user and accept on their behalf."""

    def _share(list_id: int, owner: AuthHeaders, member: AuthHeaders, role: str = "editor"):
        response = client.post(
            f"/api/v1/lists/{list_id}/share",
            headers=owner,
            json={"email": member.email, "role": role},
        )
        assert response.status_code == 200, response.text
        response = client.put(
            f"/api/v1/lists/{list_id}/invite/{member.user_id}/accept", headers=member
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _share


@pytest.fixture
def make_user(client):
    """Register additional users by name."""
    return lambda username: register(client, username)
