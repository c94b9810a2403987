"""Root conftest — shared test configuration and database fixtures."""

import os

# Ensure tests never reach a real database or cache server
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.pop("REDIS_URL", None)

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

import calctree.models  # noqa: F401 (registers tables on Base.metadata)
from calctree.db.base import Base
from calctree.infrastructure.database import (
    DatabaseSessionManager, enable_sqlite_foreign_keys,
)


@pytest.fixture
async def test_engine():
    """In-memory SQLite, one shared connection, foreign keys enforced."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session_manager(test_engine):
    """DatabaseSessionManager bound to the test engine."""
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    return manager
