"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``TransportRequest``: enforces the lifecycle
  (pending -> accepted -> en-route -> arrived -> completed, with an escape
  to cancelled from any non-terminal status).
- Every mutating method validates first and only then changes the entity.
  It returns the *write set* (column -> new value) so the repository can
  persist exactly those fields behind an expected-prior-state guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from .enums import (
    REQUEST_TRANSITIONS,
    TERMINAL_STATUSES,
    Priority,
    RequestStatus,
    next_advance_status,
)
from .errors import ConflictError, InvalidTransitionError, ValidationError

LOCATION_NOT_PROVIDED = "Location not provided"


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class TransportRequest:
    id: Optional[str] = None
    requester_ref: str = ""
    driver_ref: Optional[str] = None
    pickup_text: str = ""
    destination_text: str = ""
    priority: Priority = Priority.MEDIUM
    notes: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    location_text: Optional[str] = None
    driver_latitude: Optional[float] = None
    driver_longitude: Optional[float] = None
    estimated_arrival: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(
        cls,
        requester_ref: str,
        pickup_text: str,
        destination_text: str,
        priority: Priority | str = Priority.MEDIUM,
        notes: Optional[str] = None,
    ) -> "TransportRequest":
        """Validate creation input and build a pending, unassigned request."""
        requester = _require_text(requester_ref, "requester_ref")
        pickup = _require_text(pickup_text, "pickup")
        destination = _require_text(destination_text, "destination")
        try:
            level = Priority(priority)
        except ValueError:
            raise ValidationError(f"Unknown priority: {priority!r}") from None
        return cls(
            requester_ref=requester,
            pickup_text=pickup,
            destination_text=destination,
            priority=level,
            notes=notes.strip() if notes and notes.strip() else None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _check_transition(self, new_status: RequestStatus) -> None:
        allowed = REQUEST_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )

    def claim(
        self,
        driver_ref: str,
        location: Optional[str],
        now: datetime,
        eta_offset: timedelta = timedelta(minutes=10),
    ) -> dict[str, Any]:
        """Attach *driver_ref* to a pending request (pending -> accepted)."""
        driver = _require_text(driver_ref, "driver_ref")
        if self.status != RequestStatus.PENDING or self.driver_ref is not None:
            raise ConflictError(f"Request {self.id} is no longer pending")

        self.driver_ref = driver
        self.status = RequestStatus.ACCEPTED
        self.location_text = (
            location.strip() if location and location.strip() else LOCATION_NOT_PROVIDED
        )
        self.estimated_arrival = now + eta_offset
        self.updated_at = now
        return {
            "driver_ref": self.driver_ref,
            "status": self.status,
            "location_text": self.location_text,
            "estimated_arrival": self.estimated_arrival,
            "updated_at": now,
        }

    def advance(
        self,
        driver_ref: str,
        next_status: RequestStatus | str,
        now: datetime,
        location: Optional[str] = None,
    ) -> dict[str, Any]:
        """Move one step along accepted -> en-route -> arrived -> completed."""
        try:
            target = RequestStatus(next_status)
        except ValueError:
            raise InvalidTransitionError(f"Unknown status: {next_status!r}") from None

        if self.is_terminal:
            raise InvalidTransitionError(
                f"Request {self.id} is already {self.status.value}"
            )
        if self.driver_ref is None or driver_ref != self.driver_ref:
            raise InvalidTransitionError(
                f"Driver {driver_ref} is not assigned to request {self.id}"
            )
        expected = next_advance_status(self.status)
        if target != expected:
            raise InvalidTransitionError(
                f"Cannot advance from {self.status.value} to {target.value}"
            )
        self._check_transition(target)

        self.status = target
        self.updated_at = now
        changes: dict[str, Any] = {"status": target, "updated_at": now}
        if location and location.strip():
            self.location_text = location.strip()
            changes["location_text"] = self.location_text
        if target == RequestStatus.COMPLETED:
            self.completed_at = now
            changes["completed_at"] = now
        return changes

    def cancel(
        self, actor_ref: str, now: datetime, reason: Optional[str] = None
    ) -> dict[str, Any]:
        """Escape to cancelled from any non-terminal status."""
        if self.is_terminal:
            raise ConflictError(
                f"Request {self.id} is already {self.status.value}"
            )
        if actor_ref not in {self.requester_ref, self.driver_ref}:
            raise InvalidTransitionError(
                f"{actor_ref} may not cancel request {self.id}"
            )
        self._check_transition(RequestStatus.CANCELLED)

        self.status = RequestStatus.CANCELLED
        self.cancelled_by = actor_ref
        self.cancellation_reason = reason.strip() if reason and reason.strip() else None
        self.updated_at = now
        return {
            "status": self.status,
            "cancelled_by": self.cancelled_by,
            "cancellation_reason": self.cancellation_reason,
            "updated_at": now,
        }

    def update_location(
        self,
        location: str,
        now: datetime,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> dict[str, Any]:
        """Overwrite the driver location snapshot; status is untouched."""
        text = _require_text(location, "location")
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Request {self.id} is {self.status.value}; location is frozen"
            )
        self.location_text = text
        self.updated_at = now
        changes: dict[str, Any] = {"location_text": text, "updated_at": now}
        if latitude is not None and longitude is not None:
            self.driver_latitude = latitude
            self.driver_longitude = longitude
            changes["driver_latitude"] = latitude
            changes["driver_longitude"] = longitude
        return changes


@dataclass
class DriverAvailability:
    driver_ref: str = ""
    is_available: bool = False
    current_location: Optional[str] = None
    display_name: Optional[str] = None
    vehicle_registration: Optional[str] = None
    vehicle_type: Optional[str] = None
    updated_at: Optional[datetime] = None

    def set_available(
        self, flag: bool, now: datetime, location: Optional[str] = None
    ) -> dict[str, Any]:
        self.is_available = flag
        self.updated_at = now
        changes: dict[str, Any] = {"is_available": flag, "updated_at": now}
        if location and location.strip():
            self.current_location = location.strip()
            changes["current_location"] = self.current_location
        return changes
