"""
Shared test fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite +
StaticPool) and an httpx AsyncClient wired to the app through
ASGITransport, with ``get_db`` overridden to use that database.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root and the test helpers are importable
TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.dirname(TESTS_DIR)
for path in (ROOT_DIR, TESTS_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import get_db
from app.main import app
from app.models import Base

from helpers import ADMIN_CONSOLE, ADMIN_PASSWORD, auth_headers, create_admin, login


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create all tables on a private in-memory engine, drop them afterwards."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def admin_token(async_client: AsyncClient, db_session: AsyncSession) -> str:
    """Log in a freshly created admin from its own device."""
    admin = await create_admin(db_session)
    resp = await login(async_client, email=admin.email, password=ADMIN_PASSWORD, user_agent=ADMIN_CONSOLE)
    assert resp.status_code == 200
    return resp.json()["data"]["token"]


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    return auth_headers(admin_token, user_agent=ADMIN_CONSOLE)
