"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
import sqlalchemy as sa
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dbqueue.db.connection import build_engine, create_schema, create_session_factory
from dbqueue.observability.metrics import MetricsCollector
from dbqueue.queue import DatabaseQueue

# Point at PostgreSQL to run the suite against a real row-locking backend;
# otherwise each test gets its own SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

START_TIME = 1_700_000_000


class FakeClock:
    """Clock the tests move by hand."""

    def __init__(self, start: int = START_TIME):
        self.current = start

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Get the test database URL."""
    if TEST_DATABASE_URL:
        return TEST_DATABASE_URL
    return f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}"


@pytest_asyncio.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async database engine with a clean jobs table."""
    engine = build_engine(database_url, echo=False)
    await create_schema(engine)

    async with engine.begin() as conn:
        await conn.execute(sa.text("DELETE FROM jobs"))

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(async_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a database session for tests."""
    async with session_factory() as session:
        yield session

        # Rollback any uncommitted changes
        await session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at START_TIME."""
    return FakeClock()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def queue(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FakeClock,
    metrics: MetricsCollector,
) -> DatabaseQueue:
    """Queue with a 60 second visibility timeout on the fake clock."""
    return DatabaseQueue(
        session_factory,
        default_queue="default",
        expiry_seconds=60,
        clock=clock,
        metrics=metrics,
    )
