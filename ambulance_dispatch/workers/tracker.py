"""
Requester-side request tracker.

There is no server push: the requester re-reads the request every
``POLL_INTERVAL_SECONDS`` (default 30 s) and is told whenever the status,
the assigned driver or the driver location changed.  Staleness of up to
one interval is expected.

A read that completes after :meth:`RequestTracker.stop` is dropped
instead of being delivered; the in-flight query itself is not cancelled.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.entities import TransportRequest
from ambulance_dispatch.domain.errors import NotFoundError
from ambulance_dispatch.services.lifecycle import LifecycleService

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[TransportRequest], Union[None, Awaitable[None]]]


def _fingerprint(request: TransportRequest) -> tuple:
    return (
        request.status,
        request.driver_ref,
        request.location_text,
        request.estimated_arrival,
    )


class RequestTracker:
    def __init__(
        self,
        request_id: str,
        on_change: ChangeCallback,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: float = settings.poll_interval_seconds,
    ):
        self.request_id = request_id
        self.on_change = on_change
        self.session_factory = session_factory
        self.interval = interval_seconds
        self.last_seen: Optional[TransportRequest] = None
        self._stopped = False
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._stopped = True
        self._stop_event.set()
        if self._task:
            await self._task

    async def wait(self) -> None:
        """Block until the loop ends (terminal status, missing request, stop)."""
        if self._task:
            await self._task

    async def poll_once(self) -> Optional[TransportRequest]:
        """Fetch once; deliver and return the request if it changed."""
        async with self.session_factory() as session:
            request = await LifecycleService(session).get(self.request_id)

        if self._stopped:
            logger.debug("Discarding late result for %s", self.request_id)
            return None
        if self.last_seen is not None and _fingerprint(request) == _fingerprint(
            self.last_seen
        ):
            return None

        self.last_seen = request
        result = self.on_change(request)
        if inspect.isawaitable(result):
            await result
        return request

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except NotFoundError:
                logger.warning("Tracked request %s disappeared", self.request_id)
                break
            except Exception:
                logger.exception("Polling failed for %s", self.request_id)
            if self.last_seen is not None and self.last_seen.is_terminal:
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass
        self._stopped = True
