"""Shared test fixtures.

Each test gets a throwaway SQLite database (aiosqlite) with the schema created
from the ORM metadata, and an in-memory fakeredis standing in for Redis.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

from fakeredis import aioredis as fake_aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taskkash import redis_client
from taskkash.config import get_settings
from taskkash.database import close_db, get_engine, init_db
from taskkash.db import models  # noqa: F401
from taskkash.db.base import Base
from taskkash.email.service import reset_email_service
from taskkash.main import create_app
from tests.helpers import bearer, make_admin, register


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch, tmp_path):
    """Point settings at a per-test SQLite file and relax the global rate limit."""
    monkeypatch.setenv("TASKKASH_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'taskkash.db'}")
    monkeypatch.setenv("TASKKASH_JWT_SECRET", "test-secret-with-enough-length-for-hs256")
    monkeypatch.setenv("TASKKASH_RATE_LIMIT_REQUESTS", "10000")
    monkeypatch.setenv("TASKKASH_LOG_FORMAT", "console")
    get_settings.cache_clear()
    reset_email_service()
    yield
    get_settings.cache_clear()
    reset_email_service()


@pytest_asyncio.fixture
async def fake_redis(monkeypatch) -> AsyncGenerator[fake_aioredis.FakeRedis, None]:
    """In-memory Redis installed as the application pool."""
    fake = fake_aioredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "_pool", fake)
    yield fake
    await fake.flushall()


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Initialise the engine and create every table."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest.fixture
def mock_email_service(monkeypatch):
    """Mock the email service to prevent actual email sending."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("taskkash.auth.router.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


@pytest_asyncio.fixture
async def client(database, fake_redis, mock_email_service) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app.

    ASGITransport does not run the lifespan, so the database and Redis
    fixtures stand in for it.
    """
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def user_account(client: AsyncClient) -> dict:
    """A registered regular user: ``{"id", "token", "headers"}``."""
    data = await register(client)
    return {"id": data["user"]["id"], "token": data["access_token"], "headers": bearer(data["access_token"])}


@pytest_asyncio.fixture
async def admin_account(client: AsyncClient) -> dict:
    """A registered user promoted to admin."""
    data = await register(client, email="admin@example.com", name="Admin")
    await make_admin(data["user"]["id"])
    return {"id": data["user"]["id"], "token": data["access_token"], "headers": bearer(data["access_token"])}

