"""
Driver Location Feed
====================

While a driver works a request, their position is pushed to the request
row every ``LOCATION_UPDATE_INTERVAL_SECONDS`` (default 10 s) so the
requester's tracking view can show it.

Concurrency safety
------------------
* One **Redis distributed lock** per request (``location_feed:<id>``):
  a second feed for the same request, in this process or another, is
  refused.  The lock is renewed on every tick and released on exit.
* Writes go through ``LifecycleService.update_location`` which refuses
  terminal requests, so the feed stops by itself once the request is
  completed or cancelled.

Per tick
--------
1. Ask the provider for a fix (``None`` = nothing new, skip the write).
2. Persist it in a fresh session and commit.
3. Renew the lock, then sleep until the next tick or a stop request.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.errors import InvalidTransitionError, NotFoundError
from ambulance_dispatch.infrastructure.cache import RequestSnapshotCache
from ambulance_dispatch.infrastructure.database import commit
from ambulance_dispatch.infrastructure.locks import DistributedLock
from ambulance_dispatch.services.lifecycle import LifecycleService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationFix:
    text: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


LocationProvider = Callable[
    [], Union[Optional[LocationFix], Awaitable[Optional[LocationFix]]]
]


class LocationFeed:
    def __init__(
        self,
        redis: aioredis.Redis,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: float = settings.location_update_interval_seconds,
        lock_ttl_seconds: int = settings.feed_lock_ttl_seconds,
        cache: Optional[RequestSnapshotCache] = None,
    ):
        self.redis = redis
        self.session_factory = session_factory
        self.interval = interval_seconds
        self.lock_ttl = lock_ttl_seconds
        self.cache = cache
        self._tasks: dict[str, asyncio.Task] = {}
        self._stop_events: dict[str, asyncio.Event] = {}

    # ── Public API ────────────────────────────────────────────────────

    def is_running(self, request_id: str) -> bool:
        task = self._tasks.get(request_id)
        return task is not None and not task.done()

    async def start(self, request_id: str, provider: LocationProvider) -> bool:
        """Start feeding *request_id*.  Returns False if a feed already owns it."""
        if self.is_running(request_id):
            return False
        lock = DistributedLock(
            self.redis, f"location_feed:{request_id}", ttl_seconds=self.lock_ttl
        )
        if not await lock.acquire():
            logger.info("Location feed for %s is owned elsewhere", request_id)
            return False

        stop_event = asyncio.Event()
        self._stop_events[request_id] = stop_event
        self._tasks[request_id] = asyncio.create_task(
            self._loop(request_id, provider, lock, stop_event)
        )
        logger.info(
            "Location feed started for %s (interval=%ss)", request_id, self.interval
        )
        return True

    async def stop(self, request_id: str) -> None:
        event = self._stop_events.get(request_id)
        if event:
            event.set()
        task = self._tasks.get(request_id)
        if task:
            await task

    async def wait(self, request_id: str) -> None:
        """Block until the feed for *request_id* ends on its own."""
        task = self._tasks.get(request_id)
        if task:
            await task

    async def stop_all(self) -> None:
        for request_id in list(self._tasks):
            await self.stop(request_id)

    async def push_once(self, request_id: str, provider: LocationProvider) -> bool:
        """Run one tick.  Returns False when the feed should end."""
        fix = provider()
        if inspect.isawaitable(fix):
            fix = await fix
        if fix is None:
            return True

        async with self.session_factory() as session:
            try:
                await LifecycleService(session).update_location(
                    request_id, fix.text, latitude=fix.latitude, longitude=fix.longitude
                )
                await commit(session)
            except (InvalidTransitionError, NotFoundError) as exc:
                await session.rollback()
                logger.info("Location feed for %s ending: %s", request_id, exc)
                return False
        if self.cache is not None:
            await self.cache.invalidate(request_id)
        return True

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(
        self,
        request_id: str,
        provider: LocationProvider,
        lock: DistributedLock,
        stop_event: asyncio.Event,
    ) -> None:
        try:
            while not stop_event.is_set():
                try:
                    keep_going = await self.push_once(request_id, provider)
                except Exception:
                    logger.exception("Location push failed for %s", request_id)
                    keep_going = True
                if not keep_going:
                    break
                if not await lock.renew():
                    logger.warning("Lost location feed lock for %s", request_id)
                    break
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
                    break
                except asyncio.TimeoutError:
                    pass  # next tick
        finally:
            await lock.release()
            self._tasks.pop(request_id, None)
            self._stop_events.pop(request_id, None)
            logger.info("Location feed stopped for %s", request_id)
