"""Shared test fixtures.

Tests run against a throwaway SQLite file (aiosqlite) with the schema
created from the ORM metadata. Redis is not started; the app-wide rate
limit middleware passes through when it is unavailable.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("RAIDCITY_JWT_SECRET", "test-secret-not-for-production-use-only")
os.environ.setdefault("RAIDCITY_LOG_FORMAT", "console")

from raidcity.config import get_settings  # noqa: E402
from raidcity.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from raidcity.db.base import Base  # noqa: E402
from raidcity.main import create_app  # noqa: E402
from raidcity.raids.rate_limiter import InMemoryRateLimiter, reset_rate_limiter  # noqa: E402
from raidcity.raids.seed import seed_raid_data  # noqa: E402

@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """Fresh SQLite schema with seeded achievements and catalog items."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'raidcity.db'}"
    os.environ["RAIDCITY_DATABASE_URL"] = url
    get_settings.cache_clear()
    reset_rate_limiter()

    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with get_session_factory()() as session:
        await seed_raid_data(session)

    yield

    await close_db()
    reset_rate_limiter()
    os.environ.pop("RAIDCITY_DATABASE_URL", None)
    get_settings.cache_clear()

@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for setup and assertions."""
    async with get_session_factory()() as session:
        yield session

@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client. Lifespan is not run; ``database`` does the setup."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

@pytest.fixture
def limiter() -> InMemoryRateLimiter:
    """A limiter roomy enough that service-level tests never trip it."""
    return InMemoryRateLimiter(limit=1000, window_seconds=10)
