"""Integration test fixtures for database and HTTP client operations.

These fixtures require external resources (PostgreSQL database) and skip
the test when it is unreachable. Every test starts from empty maintenance
tables, so point DATABASE_URL at a dedicated test database.
Uses polyfactory for type-safe test data generation.
"""

import asyncio
from collections.abc import AsyncGenerator
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from src.sitedesk.core import db
from src.sitedesk.core.config import get_settings
from src.sitedesk.core.db import run_migrations_sync
from src.sitedesk.main import create_app
from tests.factories import ProjectFactory
from tests.utils import install_payment_guard, truncate_maintenance_tables


@pytest.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine]:
    """Create test database engine with migrations and the payment guard applied."""
    await db.dispose_engine()

    settings = get_settings()
    test_engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        async with test_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (OSError, SQLAlchemyError) as e:
        await test_engine.dispose()
        pytest.skip(f"PostgreSQL not reachable: {e}")

    await asyncio.to_thread(run_migrations_sync)

    async with test_engine.begin() as conn:
        await install_payment_guard(conn)
        await truncate_maintenance_tables(conn)

    yield test_engine
    await test_engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide an async session for database operations.

    IMPORTANT: The AsyncSession context manager only closes the session on exit;
    it does NOT auto-commit. Tests must explicitly call `await session.commit()`
    to persist changes to the database.
    """
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def client(engine: AsyncEngine) -> AsyncGenerator[AsyncClient]:
    """Create test client against the real database."""
    await db.dispose_engine()

    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    await db.dispose_engine()


@pytest.fixture
async def project(db_session: AsyncSession) -> UUID:
    """A committed project with no owned data."""
    row = ProjectFactory.build()
    db_session.add(row)
    await db_session.commit()
    return row.id

