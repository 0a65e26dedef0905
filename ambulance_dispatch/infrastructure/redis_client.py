"""Shared Redis connection pool for the snapshot cache and feed locks."""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ambulance_dispatch.config import settings

logger = logging.getLogger(__name__)

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_socket_timeout_seconds,
)


async def get_redis() -> aioredis.Redis:
    return aioredis.Redis(connection_pool=_pool)


async def ping_redis(client: aioredis.Redis) -> bool:
    """True if Redis answers.  Dispatch keeps working without it."""
    try:
        return bool(await client.ping())
    except RedisError as exc:
        logger.warning("Redis unreachable: %s", exc)
        return False


async def close_redis() -> None:
    """Drop pooled connections on shutdown."""
    await _pool.disconnect()
