"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ambulance_dispatch.domain.enums import Priority, RequestStatus


# ── Requests ──────────────────────────────────────────────────────────


class RequestCreate(BaseModel):
    requester_ref: str = Field(..., max_length=64)
    pickup: str = Field(..., max_length=500)
    destination: str = Field(..., max_length=500)
    priority: Priority = Priority.MEDIUM
    notes: Optional[str] = Field(None, max_length=2000)


class ClaimBody(BaseModel):
    driver_ref: str = Field(..., max_length=64)
    driver_location: Optional[str] = Field(None, max_length=500)


class AdvanceBody(BaseModel):
    driver_ref: str = Field(..., max_length=64)
    next_status: RequestStatus
    driver_location: Optional[str] = Field(None, max_length=500)


class CancelBody(BaseModel):
    actor_ref: str = Field(..., max_length=64)
    reason: Optional[str] = Field(None, max_length=500)


class LocationBody(BaseModel):
    location: str = Field(..., max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class DriverRegister(BaseModel):
    driver_ref: str = Field(..., max_length=64)
    display_name: Optional[str] = Field(None, max_length=120)
    vehicle_registration: Optional[str] = Field(None, max_length=32)
    vehicle_type: Optional[str] = Field(None, max_length=32)
    is_available: bool = False
    current_location: Optional[str] = Field(None, max_length=500)


class AvailabilityBody(BaseModel):
    is_available: bool
    current_location: Optional[str] = Field(None, max_length=500)


# ── Responses ─────────────────────────────────────────────────────────


class RequestResponse(BaseModel):
    id: str
    requester_ref: str
    driver_ref: Optional[str] = None
    pickup_text: str
    destination_text: str
    priority: Priority
    notes: Optional[str] = None
    status: RequestStatus
    location_text: Optional[str] = None
    driver_latitude: Optional[float] = None
    driver_longitude: Optional[float] = None
    estimated_arrival: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    driver_ref: str
    display_name: Optional[str] = None
    vehicle_registration: Optional[str] = None
    vehicle_type: Optional[str] = None
    is_available: bool
    current_location: Optional[str] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    database: str = "ok"
    redis: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    error: str
