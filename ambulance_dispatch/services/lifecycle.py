"""
Request Lifecycle Manager
=========================

Creates transport requests and applies every status change:

    pending --claim--> accepted --advance--> en-route --advance--> arrived
        --advance--> completed,   cancel: any non-terminal -> cancelled

Each operation reads the current row, validates the change on the domain
entity, then persists the entity's write set with a conditional UPDATE
whose precondition is the status (and driver) that was read.  If another
writer got there first the UPDATE matches no row and the caller gets an
error; the stored request is left exactly as the other writer left it.

Nothing here retries, compensates or rolls back on its own; backend
failures surface as ``TransportError``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.entities import TransportRequest
from ambulance_dispatch.domain.enums import Priority, RequestStatus
from ambulance_dispatch.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from ambulance_dispatch.infrastructure.repositories import TransportRequestRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Clock = utcnow,
        eta_offset: Optional[timedelta] = None,
    ):
        self.repo = TransportRequestRepository(session)
        self.clock = clock
        self.eta_offset = eta_offset or timedelta(minutes=settings.eta_offset_minutes)

    # ── Reads ─────────────────────────────────────────────────────────

    async def get(self, request_id: str) -> TransportRequest:
        request = await self.repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return request

    async def list_for_requester(self, requester_ref: str) -> list[TransportRequest]:
        return await self.repo.list_by_requester(requester_ref)

    async def list_for_driver(self, driver_ref: str) -> list[TransportRequest]:
        return await self.repo.list_by_driver(driver_ref)

    async def active_for_requester(
        self, requester_ref: str
    ) -> Optional[TransportRequest]:
        """Most recent accepted / en-route / arrived request, if any."""
        return await self.repo.latest_active_for_requester(requester_ref)

    # ── Writes ────────────────────────────────────────────────────────

    async def create(
        self,
        requester_ref: str,
        pickup: str,
        destination: str,
        priority: Priority | str = Priority.MEDIUM,
        notes: Optional[str] = None,
    ) -> TransportRequest:
        request = TransportRequest.new(
            requester_ref, pickup, destination, priority=priority, notes=notes
        )
        now = self.clock()
        request.created_at = now
        request.updated_at = now
        created = await self.repo.add(request)
        logger.info(
            "Request %s created by %s (priority=%s)",
            created.id,
            created.requester_ref,
            created.priority.value,
        )
        return created

    async def claim(
        self, request_id: str, driver_ref: str, driver_location: Optional[str] = None
    ) -> TransportRequest:
        request = await self.get(request_id)
        changes = request.claim(
            driver_ref, driver_location, self.clock(), eta_offset=self.eta_offset
        )
        won = await self.repo.apply_if(
            request_id,
            changes,
            expected_status=RequestStatus.PENDING,
            require_unassigned=True,
        )
        if not won:
            logger.warning(
                "Driver %s lost the claim race for request %s", driver_ref, request_id
            )
            raise ConflictError(f"Request {request_id} is no longer pending")
        logger.info("Request %s claimed by driver %s", request_id, driver_ref)
        return await self.get(request_id)

    async def advance(
        self,
        request_id: str,
        driver_ref: str,
        next_status: RequestStatus | str,
        driver_location: Optional[str] = None,
    ) -> TransportRequest:
        request = await self.get(request_id)
        prior = request.status
        try:
            changes = request.advance(
                driver_ref, next_status, self.clock(), location=driver_location
            )
        except InvalidTransitionError:
            logger.warning(
                "Rejected advance of %s from %s to %s by %s",
                request_id,
                prior.value,
                getattr(next_status, "value", next_status),
                driver_ref,
            )
            raise
        applied = await self.repo.apply_if(
            request_id,
            changes,
            expected_status=prior,
            expected_driver=driver_ref,
        )
        if not applied:
            raise InvalidTransitionError(
                f"Request {request_id} changed while advancing from {prior.value}"
            )
        logger.info(
            "Request %s advanced %s -> %s", request_id, prior.value, request.status.value
        )
        return await self.get(request_id)

    async def cancel(
        self, request_id: str, actor_ref: str, reason: Optional[str] = None
    ) -> TransportRequest:
        request = await self.get(request_id)
        prior = request.status
        changes = request.cancel(actor_ref, self.clock(), reason=reason)
        applied = await self.repo.apply_if(
            request_id,
            changes,
            expected_status=prior,
            expected_driver=request.driver_ref,
        )
        if not applied:
            raise ConflictError(
                f"Request {request_id} changed before it could be cancelled"
            )
        logger.info("Request %s cancelled by %s", request_id, actor_ref)
        return await self.get(request_id)

    async def update_location(
        self,
        request_id: str,
        location_text: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> TransportRequest:
        request = await self.get(request_id)
        changes = request.update_location(
            location_text, self.clock(), latitude=latitude, longitude=longitude
        )
        # last write wins; the only guard is that the request is still open
        if not await self.repo.apply_while_open(request_id, changes):
            current = await self.get(request_id)
            raise InvalidTransitionError(
                f"Request {request_id} is {current.status.value}; location is frozen"
            )
        logger.debug("Request %s location -> %s", request_id, location_text)
        return await self.get(request_id)
