"""
Candidate pool for idle drivers
===============================

Drivers are not assigned automatically.  Every available driver sees the
same list of claimable requests, oldest first, and the first conditional
claim write wins.

A request is claimable when its status is ``pending`` and it has no
driver.  A driver whose availability flag is off sees nothing; the
filter never alters the requests themselves.

Complexity: O(N log N) for N pending requests (one sort).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from .entities import DriverAvailability, TransportRequest
from .enums import RequestStatus

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_claimable(request: TransportRequest) -> bool:
    return request.status == RequestStatus.PENDING and request.driver_ref is None


def _submitted_at(request: TransportRequest) -> datetime:
    ts = request.created_at
    if ts is None:
        return _EPOCH
    # SQLite hands back naive datetimes
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def claimable_requests(
    requests: Iterable[TransportRequest],
    driver: Optional[DriverAvailability] = None,
    *,
    check_driver: bool = False,
) -> Sequence[TransportRequest]:
    """Return the requests *driver* may claim, ordered by submission time.

    With ``check_driver`` set, an unknown or unavailable driver gets an
    empty pool.
    """
    if check_driver and (driver is None or not driver.is_available):
        return []
    pool = [r for r in requests if is_claimable(r)]
    pool.sort(key=_submitted_at)
    return pool
