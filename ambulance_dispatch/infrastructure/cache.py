"""
Read-through snapshot cache for polled requests.

Both the requester's tracking view and the driver's list re-fetch on a
fixed timer.  Snapshots are kept in Redis for one polling interval, so a
reader is at most ``poll_interval_seconds`` behind the database; every
successful write through the API replaces the snapshot immediately.

Redis is an optimisation only: when it is unreachable the loader is
called directly and nothing is cached.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

Snapshot = dict[str, Any]


class RequestSnapshotCache:
    def __init__(self, client: aioredis.Redis, ttl_seconds: int = 30):
        self.redis = client
        self.ttl = ttl_seconds

    @staticmethod
    def key(request_id: str) -> str:
        return f"request:{request_id}"

    async def get(self, request_id: str) -> Optional[Snapshot]:
        try:
            raw = await self.redis.get(self.key(request_id))
        except RedisError:
            logger.warning("Snapshot cache read failed for %s", request_id)
            return None
        return json.loads(raw) if raw else None

    async def store(self, snapshot: Snapshot) -> None:
        try:
            await self.redis.set(
                self.key(snapshot["id"]), json.dumps(snapshot), ex=self.ttl
            )
        except RedisError:
            logger.warning("Snapshot cache write failed for %s", snapshot["id"])

    async def invalidate(self, request_id: str) -> None:
        try:
            await self.redis.delete(self.key(request_id))
        except RedisError:
            logger.warning("Snapshot cache invalidation failed for %s", request_id)

    async def get_or_load(
        self,
        request_id: str,
        loader: Callable[[], Awaitable[Optional[Snapshot]]],
    ) -> Optional[Snapshot]:
        cached = await self.get(request_id)
        if cached is not None:
            return cached
        snapshot = await loader()
        if snapshot is not None:
            await self.store(snapshot)
        return snapshot
