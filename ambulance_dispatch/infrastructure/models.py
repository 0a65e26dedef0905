"""
SQLAlchemy ORM models.

Tables
------
* ``ambulance_drivers``   -- driver records with the availability flag
* ``ambulance_requests``  -- emergency transport requests

Indexes
-------
* **B-Tree** on ``status``, ``requester_ref``, ``driver_ref`` and
  ``created_at`` for the pending pool (oldest first) and the per-actor
  listings polled by both sides.
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    String,
    Text,
    func,
)

from .database import Base
from ambulance_dispatch.domain.enums import Priority, RequestStatus


def _enum_values(enum_cls):
    # persist "en-route", not "EN_ROUTE"
    return [member.value for member in enum_cls]


def _new_id() -> str:
    return uuid.uuid4().hex


class DriverModel(Base):
    __tablename__ = "ambulance_drivers"

    driver_ref = Column(String(64), primary_key=True)
    display_name = Column(String(120), nullable=True)
    vehicle_registration = Column(String(32), nullable=True)
    vehicle_type = Column(String(32), nullable=True)
    is_available = Column(Boolean, default=False, nullable=False)
    current_location = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_drivers_available", "is_available"),)


class TransportRequestModel(Base):
    __tablename__ = "ambulance_requests"

    id = Column(String(32), primary_key=True, default=_new_id)
    requester_ref = Column(String(64), nullable=False)
    driver_ref = Column(String(64), nullable=True)

    pickup_text = Column(Text, nullable=False)
    destination_text = Column(Text, nullable=False)
    priority = Column(
        Enum(Priority, name="request_priority", values_callable=_enum_values),
        default=Priority.MEDIUM,
        nullable=False,
    )
    notes = Column(Text, nullable=True)

    status = Column(
        Enum(RequestStatus, name="request_status", values_callable=_enum_values),
        default=RequestStatus.PENDING,
        nullable=False,
    )

    # Driver-supplied tracking snapshot
    location_text = Column(Text, nullable=True)
    driver_latitude = Column(Float, nullable=True)
    driver_longitude = Column(Float, nullable=True)
    estimated_arrival = Column(DateTime(timezone=True), nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_requests_status", "status"),
        Index("idx_requests_requester", "requester_ref"),
        Index("idx_requests_driver", "driver_ref"),
        Index("idx_requests_created", "created_at"),
    )
