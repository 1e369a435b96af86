"""
Pytest configuration and fixtures for the Chatter 2FA tests
"""

import os
import sys

# Settings are read at import time; provide test values before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./chatter_2fa_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-chatter-2fa")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH120

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from chatter_2fa.auth import create_access_token  # noqa: E402
from chatter_2fa.database import Base, get_db  # noqa: E402
from chatter_2fa.main import app  # noqa: E402
from chatter_2fa.middleware.rate_limit import limiter  # noqa: E402
from chatter_2fa.models.two_factor import UserTwoFactor  # noqa: E402, F401


@pytest.fixture(scope="function")
def database_path(tmp_path):
    """
    Create a fresh SQLite database file for each test function.

    Tables are created through a synchronous engine so plain (non-async)
    route tests can use the database too.
    """
    path = tmp_path / "chatter_2fa.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture(scope="function")
def sync_engine(database_path):
    """Synchronous engine on the test database, for poking at rows directly."""
    engine = create_engine(f"sqlite:///{database_path}")
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(database_path):
    """
    Session maker bound to the test database.

    NullPool keeps connections from being shared between the pytest event
    loop and the one TestClient runs the app in.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests that need it."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def client(session_factory):
    """Create a test client for the FastAPI application with the test database"""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def test_user() -> dict:
    """Identity of the signed-in test user, as the session token asserts it"""
    return {"id": "user-1", "email": "alice@example.com"}


@pytest.fixture
def auth_headers(test_user: dict) -> dict:
    """Generate authentication headers for the test user"""
    access_token = create_access_token(
        data={"sub": test_user["id"], "email": test_user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def authenticated_client(client, auth_headers):
    """Test client that sends the test user's session token"""
    client.headers.update(auth_headers)
    return client


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with empty rate limit counters."""
    limiter.reset()
    yield
    limiter.reset()
