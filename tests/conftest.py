"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production ORM models are used as-is;
Redis is replaced by ``AsyncMock`` clients.

The in-memory engine keeps a single connection (``StaticPool``), so every
session opened from ``session_factory`` in one test sees the same data.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ambulance_dispatch.infrastructure.cache import RequestSnapshotCache
from ambulance_dispatch.infrastructure.database import Base
from ambulance_dispatch.infrastructure import models  # noqa: F401  (registers tables)

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Deterministic clock: every reading is one second after the last."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
        self.last: datetime | None = None

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        self.last = self.current
        return self.current


def make_redis_mock() -> AsyncMock:
    """Redis stand-in where nothing is cached and every lock is free."""
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.eval = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    return client


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory schema per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def redis_mock() -> AsyncMock:
    return make_redis_mock()


@pytest_asyncio.fixture
async def client(session_factory, redis_mock) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by SQLite and a mocked Redis."""
    from ambulance_dispatch.api.app import create_app
    from ambulance_dispatch.api.dependencies import get_cache, get_db
    from ambulance_dispatch.api.middleware import limiter
    from ambulance_dispatch.infrastructure.redis_client import get_redis

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _test_redis():
        return redis_mock

    async def _test_cache():
        return RequestSnapshotCache(redis_mock, ttl_seconds=30)

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_cache] = _test_cache
    app.dependency_overrides[get_redis] = _test_redis

    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    limiter.enabled = True
