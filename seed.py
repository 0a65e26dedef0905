"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 ambulance drivers (4 accepting requests, 2 off duty)
  - 6 transport requests walked through the lifecycle service, so every
    status from pending to completed / cancelled is represented
"""

import asyncio

from sqlalchemy import text

from ambulance_dispatch.domain.enums import Priority, RequestStatus
from ambulance_dispatch.infrastructure.database import async_session_factory, engine
from ambulance_dispatch.services.lifecycle import LifecycleService
from ambulance_dispatch.services.matching import MatchingService

DRIVERS = [
    {"driver_ref": "drv-001", "display_name": "Ravi Kumar", "vehicle_registration": "MH-02-AB-1021", "vehicle_type": "ALS", "is_available": True, "current_location": "Andheri East depot"},
    {"driver_ref": "drv-002", "display_name": "Asha Menon", "vehicle_registration": "MH-02-AB-1022", "vehicle_type": "BLS", "is_available": True, "current_location": "Bandra fire station"},
    {"driver_ref": "drv-003", "display_name": "Imran Shaikh", "vehicle_registration": "MH-02-AB-1023", "vehicle_type": "ALS", "is_available": True, "current_location": "Powai lake gate"},
    {"driver_ref": "drv-004", "display_name": "Neha Desai", "vehicle_registration": "MH-02-AB-1024", "vehicle_type": "BLS", "is_available": True, "current_location": "Dadar TT circle"},
    {"driver_ref": "drv-005", "display_name": "Suresh Pillai", "vehicle_registration": "MH-02-AB-1025", "vehicle_type": "ALS", "is_available": False, "current_location": None},
    {"driver_ref": "drv-006", "display_name": "Farah Khan", "vehicle_registration": "MH-02-AB-1026", "vehicle_type": "BLS", "is_available": False, "current_location": None},
]

# (requester, pickup, destination, priority, driver, final status)
REQUESTS = [
    ("pat-101", "12 Hill Road, Bandra", "Lilavati Hospital", Priority.HIGH, None, RequestStatus.PENDING),
    ("pat-102", "Sahar Road, Andheri East", "Nanavati Hospital", Priority.CRITICAL, None, RequestStatus.PENDING),
    ("pat-103", "Hiranandani Gardens, Powai", "Hiranandani Hospital", Priority.MEDIUM, "drv-003", RequestStatus.EN_ROUTE),
    ("pat-104", "Shivaji Park, Dadar", "KEM Hospital", Priority.HIGH, "drv-004", RequestStatus.ARRIVED),
    ("pat-105", "Linking Road, Khar", "Holy Family Hospital", Priority.LOW, "drv-002", RequestStatus.COMPLETED),
    ("pat-106", "Marol Naka", "Seven Hills Hospital", Priority.MEDIUM, None, RequestStatus.CANCELLED),
]

_AFTER_CLAIM = (RequestStatus.EN_ROUTE, RequestStatus.ARRIVED, RequestStatus.COMPLETED)


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM ambulance_drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        matching = MatchingService(session)
        lifecycle = LifecycleService(session)

        # ── Drivers ───────────────────────────────────────────────────
        for d in DRIVERS:
            await matching.register_driver(**d)
        print(f"  Created {len(DRIVERS)} drivers")

        # ── Requests ──────────────────────────────────────────────────
        for requester, pickup, destination, priority, driver, final in REQUESTS:
            req = await lifecycle.create(requester, pickup, destination, priority=priority)
            if final == RequestStatus.CANCELLED:
                await lifecycle.cancel(req.id, requester, reason="Reached hospital by taxi")
                continue
            if driver is None:
                continue
            await lifecycle.claim(req.id, driver, f"Leaving {driver} base")
            for status in _AFTER_CLAIM:
                await lifecycle.advance(req.id, driver, status)
                if status == final:
                    break
        print(f"  Created {len(REQUESTS)} requests")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
