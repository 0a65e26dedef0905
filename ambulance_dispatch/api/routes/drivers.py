"""
Driver endpoints
================

POST /api/v1/drivers                          -- register / update a driver record
GET  /api/v1/drivers/available                -- drivers accepting requests
GET  /api/v1/drivers/{driver_ref}             -- driver record and flag
PUT  /api/v1/drivers/{driver_ref}/availability -- toggle "accepting requests"
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.api.dependencies import get_db
from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.schemas import (
    AvailabilityBody,
    DriverRegister,
    DriverResponse,
    ErrorResponse,
)
from ambulance_dispatch.config import settings
from ambulance_dispatch.infrastructure.database import commit
from ambulance_dispatch.services.matching import MatchingService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post(
    "",
    status_code=201,
    response_model=DriverResponse,
    summary="Register or update a driver record",
)
@limiter.limit(settings.rate_limit)
async def register_driver(
    request: Request,
    body: DriverRegister,
    db: AsyncSession = Depends(get_db),
):
    driver = await MatchingService(db).register_driver(
        body.driver_ref,
        display_name=body.display_name,
        vehicle_registration=body.vehicle_registration,
        vehicle_type=body.vehicle_type,
        is_available=body.is_available,
        current_location=body.current_location,
    )
    await commit(db)
    return driver


@router.get(
    "/available",
    response_model=list[DriverResponse],
    summary="List drivers currently accepting requests",
)
@limiter.limit(settings.rate_limit)
async def list_available_drivers(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await MatchingService(db).list_available_drivers()


@router.get(
    "/{driver_ref}",
    response_model=DriverResponse,
    summary="Get a driver record",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_ref: str,
    db: AsyncSession = Depends(get_db),
):
    return await MatchingService(db).get_driver(driver_ref)


@router.put(
    "/{driver_ref}/availability",
    response_model=DriverResponse,
    summary="Toggle whether the driver is accepting requests",
    description=(
        "Only the driver's own record changes; requests already claimed "
        "by this driver are untouched."
    ),
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def set_availability(
    request: Request,
    driver_ref: str,
    body: AvailabilityBody,
    db: AsyncSession = Depends(get_db),
):
    driver = await MatchingService(db).toggle_availability(
        driver_ref, body.is_available, location=body.current_location
    )
    await commit(db)
    return driver
