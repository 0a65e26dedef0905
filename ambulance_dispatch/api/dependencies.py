"""FastAPI dependency injection helpers."""

from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.config import settings
from ambulance_dispatch.infrastructure.cache import RequestSnapshotCache
from ambulance_dispatch.infrastructure.database import async_session_factory, commit
from ambulance_dispatch.infrastructure.redis_client import get_redis


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error.

    Write routes commit explicitly before caching or answering; the commit
    here only flushes whatever a read-only route left pending.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            raise


async def get_cache() -> RequestSnapshotCache:
    return RequestSnapshotCache(
        await get_redis(), ttl_seconds=settings.poll_interval_seconds
    )
