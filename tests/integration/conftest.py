"""
Fixtures for tests that run against a real PostgreSQL database.

Requires PostgreSQL to be running (via docker-compose) at the configured
DATABASE_URL. Tests are skipped when the database cannot be reached.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings


@pytest_asyncio.fixture
async def pool() -> AsyncIterator[AsyncConnectionPool]:
    """Create a migrated connection pool with empty onboarding tables."""
    settings = get_settings()
    pool = AsyncConnectionPool(conninfo=settings.database_url, min_size=1, max_size=5, open=False)
    try:
        await pool.open(wait=True, timeout=5)
    except PoolTimeout:
        await pool.close()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}")

    await run_migrations(pool)
    async with pool.connection() as conn:
        await conn.execute(
            "TRUNCATE onboarding_progress, invitations, profiles, memberships, organizations"
        )
        await conn.commit()

    yield pool
    await pool.close()
