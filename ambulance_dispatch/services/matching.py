"""
Driver matching and availability.

The pending pool is recomputed on every fetch; there is no push and no
automatic assignment.  Availability only gates what a driver *sees*: it
is stored on the driver's own record and never rewrites requests.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.domain.entities import DriverAvailability, TransportRequest
from ambulance_dispatch.domain.errors import NotFoundError, ValidationError
from ambulance_dispatch.domain.matching import claimable_requests
from ambulance_dispatch.infrastructure.repositories import (
    DriverRepository,
    TransportRequestRepository,
)
from ambulance_dispatch.services.lifecycle import Clock, utcnow

logger = logging.getLogger(__name__)


class MatchingService:
    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow):
        self.requests = TransportRequestRepository(session)
        self.drivers = DriverRepository(session)
        self.clock = clock

    async def register_driver(
        self,
        driver_ref: str,
        *,
        display_name: Optional[str] = None,
        vehicle_registration: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        is_available: bool = False,
        current_location: Optional[str] = None,
    ) -> DriverAvailability:
        if not driver_ref or not driver_ref.strip():
            raise ValidationError("driver_ref is required")
        driver = DriverAvailability(
            driver_ref=driver_ref.strip(),
            is_available=is_available,
            current_location=current_location,
            display_name=display_name,
            vehicle_registration=vehicle_registration,
            vehicle_type=vehicle_type,
            updated_at=self.clock(),
        )
        return await self.drivers.upsert(driver)

    async def get_driver(self, driver_ref: str) -> DriverAvailability:
        driver = await self.drivers.get_by_ref(driver_ref)
        if driver is None:
            raise NotFoundError(f"Driver {driver_ref} not found")
        return driver

    async def toggle_availability(
        self, driver_ref: str, flag: bool, location: Optional[str] = None
    ) -> DriverAvailability:
        driver = await self.get_driver(driver_ref)
        changes = driver.set_available(flag, self.clock(), location=location)
        if not await self.drivers.apply(driver_ref, changes):
            raise NotFoundError(f"Driver {driver_ref} not found")
        logger.info(
            "Driver %s is %s", driver_ref, "available" if flag else "unavailable"
        )
        return await self.get_driver(driver_ref)

    async def list_pending(
        self, driver_ref: Optional[str] = None
    ) -> list[TransportRequest]:
        """Claimable requests, oldest first.

        Scoped to *driver_ref* when given: an unknown or unavailable driver
        sees an empty pool.
        """
        driver = None
        if driver_ref is not None:
            driver = await self.drivers.get_by_ref(driver_ref)
            if driver is None or not driver.is_available:
                return []
        pending = await self.requests.list_pending()
        return list(
            claimable_requests(pending, driver, check_driver=driver_ref is not None)
        )

    async def list_available_drivers(self) -> list[DriverAvailability]:
        return await self.drivers.get_available()
