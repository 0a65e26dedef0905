"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Rows are handed out as domain entities.

Writes to an existing request go through :meth:`apply_if` -- a single
``UPDATE ... WHERE id = :id AND status = :expected`` statement.  It either
changes the row atomically or touches nothing, so a lost race never
leaves a partial write behind.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .database import backend_errors
from .models import DriverModel, TransportRequestModel
from ambulance_dispatch.domain.entities import DriverAvailability, TransportRequest
from ambulance_dispatch.domain.enums import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    RequestStatus,
)

_REQUEST_FIELDS = (
    "id",
    "requester_ref",
    "driver_ref",
    "pickup_text",
    "destination_text",
    "priority",
    "notes",
    "status",
    "location_text",
    "driver_latitude",
    "driver_longitude",
    "estimated_arrival",
    "cancellation_reason",
    "cancelled_by",
    "completed_at",
    "created_at",
    "updated_at",
)


def request_to_entity(row: TransportRequestModel) -> TransportRequest:
    return TransportRequest(**{name: getattr(row, name) for name in _REQUEST_FIELDS})


def driver_to_entity(row: DriverModel) -> DriverAvailability:
    return DriverAvailability(
        driver_ref=row.driver_ref,
        is_available=bool(row.is_available),
        current_location=row.current_location,
        display_name=row.display_name,
        vehicle_registration=row.vehicle_registration,
        vehicle_type=row.vehicle_type,
        updated_at=row.updated_at,
    )


class TransportRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, request: TransportRequest) -> TransportRequest:
        row = TransportRequestModel(
            requester_ref=request.requester_ref,
            driver_ref=None,
            pickup_text=request.pickup_text,
            destination_text=request.destination_text,
            priority=request.priority,
            notes=request.notes,
            status=RequestStatus.PENDING,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )
        with backend_errors():
            self.session.add(row)
            await self.session.flush()
        return request_to_entity(row)

    async def get_by_id(self, request_id: str) -> Optional[TransportRequest]:
        with backend_errors():
            result = await self.session.execute(
                select(TransportRequestModel)
                .where(TransportRequestModel.id == request_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        return request_to_entity(row) if row else None

    async def apply_if(
        self,
        request_id: str,
        changes: dict[str, Any],
        *,
        expected_status: RequestStatus,
        expected_driver: Optional[str] = None,
        require_unassigned: bool = False,
    ) -> bool:
        """Write *changes* only if the row still matches the precondition.

        Returns ``True`` when exactly one row was updated.
        """
        stmt = (
            update(TransportRequestModel)
            .where(TransportRequestModel.id == request_id)
            .where(TransportRequestModel.status == expected_status)
        )
        if require_unassigned:
            stmt = stmt.where(TransportRequestModel.driver_ref.is_(None))
        elif expected_driver is not None:
            stmt = stmt.where(TransportRequestModel.driver_ref == expected_driver)
        stmt = stmt.values(**changes).execution_options(synchronize_session=False)

        with backend_errors():
            result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def apply_while_open(self, request_id: str, changes: dict[str, Any]) -> bool:
        """Write *changes* unless the request has reached a terminal status."""
        stmt = (
            update(TransportRequestModel)
            .where(TransportRequestModel.id == request_id)
            .where(TransportRequestModel.status.notin_(list(TERMINAL_STATUSES)))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        with backend_errors():
            result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_pending(self) -> list[TransportRequest]:
        with backend_errors():
            result = await self.session.execute(
                select(TransportRequestModel)
                .where(TransportRequestModel.status == RequestStatus.PENDING)
                .where(TransportRequestModel.driver_ref.is_(None))
                .order_by(TransportRequestModel.created_at)
            )
        return [request_to_entity(r) for r in result.scalars().all()]

    async def list_by_requester(self, requester_ref: str) -> list[TransportRequest]:
        with backend_errors():
            result = await self.session.execute(
                select(TransportRequestModel)
                .where(TransportRequestModel.requester_ref == requester_ref)
                .order_by(TransportRequestModel.created_at.desc())
            )
        return [request_to_entity(r) for r in result.scalars().all()]

    async def list_by_driver(self, driver_ref: str) -> list[TransportRequest]:
        with backend_errors():
            result = await self.session.execute(
                select(TransportRequestModel)
                .where(TransportRequestModel.driver_ref == driver_ref)
                .order_by(TransportRequestModel.created_at.desc())
            )
        return [request_to_entity(r) for r in result.scalars().all()]

    async def latest_active_for_requester(
        self, requester_ref: str
    ) -> Optional[TransportRequest]:
        with backend_errors():
            result = await self.session.execute(
                select(TransportRequestModel)
                .where(TransportRequestModel.requester_ref == requester_ref)
                .where(TransportRequestModel.status.in_(list(ACTIVE_STATUSES)))
                .order_by(TransportRequestModel.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
        return request_to_entity(row) if row else None


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_ref(self, driver_ref: str) -> Optional[DriverAvailability]:
        with backend_errors():
            row = await self.session.get(
                DriverModel, driver_ref, populate_existing=True
            )
        return driver_to_entity(row) if row else None

    async def upsert(self, driver: DriverAvailability) -> DriverAvailability:
        with backend_errors():
            row = await self.session.get(DriverModel, driver.driver_ref)
            if row is None:
                row = DriverModel(driver_ref=driver.driver_ref)
                self.session.add(row)
            row.display_name = driver.display_name
            row.vehicle_registration = driver.vehicle_registration
            row.vehicle_type = driver.vehicle_type
            row.is_available = driver.is_available
            row.current_location = driver.current_location
            row.updated_at = driver.updated_at
            await self.session.flush()
        return driver_to_entity(row)

    async def apply(self, driver_ref: str, changes: dict[str, Any]) -> bool:
        stmt = (
            update(DriverModel)
            .where(DriverModel.driver_ref == driver_ref)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        with backend_errors():
            result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_available(self) -> list[DriverAvailability]:
        with backend_errors():
            result = await self.session.execute(
                select(DriverModel)
                .where(DriverModel.is_available.is_(True))
                .order_by(DriverModel.driver_ref)
            )
        return [driver_to_entity(r) for r in result.scalars().all()]
