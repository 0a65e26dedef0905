"""Domain enumerations and state-transition rules."""

from __future__ import annotations

import enum
from typing import Optional


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EN_ROUTE = "en-route"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Forward path walked by claim + advance
ADVANCE_SEQUENCE: tuple[RequestStatus, ...] = (
    RequestStatus.PENDING,
    RequestStatus.ACCEPTED,
    RequestStatus.EN_ROUTE,
    RequestStatus.ARRIVED,
    RequestStatus.COMPLETED,
)

TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.COMPLETED, RequestStatus.CANCELLED}
)

ACTIVE_STATUSES: frozenset[RequestStatus] = frozenset(
    {RequestStatus.ACCEPTED, RequestStatus.EN_ROUTE, RequestStatus.ARRIVED}
)

# State machine: maps current status -> set of valid next statuses
REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.ACCEPTED, RequestStatus.CANCELLED}
    ),
    RequestStatus.ACCEPTED: frozenset(
        {RequestStatus.EN_ROUTE, RequestStatus.CANCELLED}
    ),
    RequestStatus.EN_ROUTE: frozenset(
        {RequestStatus.ARRIVED, RequestStatus.CANCELLED}
    ),
    RequestStatus.ARRIVED: frozenset(
        {RequestStatus.COMPLETED, RequestStatus.CANCELLED}
    ),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}


def next_advance_status(status: RequestStatus) -> Optional[RequestStatus]:
    """Return the single status a driver may advance to, if any.

    ``pending`` has no advance target: leaving it requires a claim.
    """
    if status in TERMINAL_STATUSES or status == RequestStatus.PENDING:
        return None
    idx = ADVANCE_SEQUENCE.index(status)
    return ADVANCE_SEQUENCE[idx + 1]
