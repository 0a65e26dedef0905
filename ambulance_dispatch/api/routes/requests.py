"""
Transport request endpoints
===========================

POST /api/v1/requests                     -- create a request (pending)
GET  /api/v1/requests?requester_ref=...   -- requester history, newest first
GET  /api/v1/requests?driver_ref=...      -- requests worked by a driver
GET  /api/v1/requests/active              -- requester's in-progress request
GET  /api/v1/requests/pending             -- claimable pool, oldest first
GET  /api/v1/requests/{request_id}        -- polled status (snapshot cache)
POST /api/v1/requests/{request_id}/claim    -- driver claims (first writer wins)
POST /api/v1/requests/{request_id}/advance  -- driver moves one step forward
POST /api/v1/requests/{request_id}/cancel   -- requester or driver cancels
PUT  /api/v1/requests/{request_id}/location -- driver location snapshot
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.api.dependencies import get_cache, get_db
from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.schemas import (
    AdvanceBody,
    CancelBody,
    ClaimBody,
    ErrorResponse,
    LocationBody,
    RequestCreate,
    RequestResponse,
)
from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.entities import TransportRequest
from ambulance_dispatch.infrastructure.cache import RequestSnapshotCache
from ambulance_dispatch.infrastructure.database import commit
from ambulance_dispatch.services.lifecycle import LifecycleService
from ambulance_dispatch.services.matching import MatchingService

router = APIRouter(prefix="/requests", tags=["requests"])

_CONFLICT = {409: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _snapshot(entity: TransportRequest) -> dict:
    return RequestResponse.model_validate(entity).model_dump(mode="json")


@router.post(
    "",
    status_code=201,
    response_model=RequestResponse,
    summary="Submit an emergency transport request",
    responses={422: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_request(
    request: Request,
    body: RequestCreate,
    db: AsyncSession = Depends(get_db),
):
    created = await LifecycleService(db).create(
        body.requester_ref,
        body.pickup,
        body.destination,
        priority=body.priority,
        notes=body.notes,
    )
    await commit(db)
    return created


@router.get(
    "",
    response_model=list[RequestResponse],
    summary="List requests by requester or by driver",
)
@limiter.limit(settings.rate_limit)
async def list_requests(
    request: Request,
    requester_ref: Optional[str] = Query(None),
    driver_ref: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if (requester_ref is None) == (driver_ref is None):
        raise HTTPException(
            status_code=400,
            detail="Pass exactly one of requester_ref or driver_ref",
        )
    service = LifecycleService(db)
    if requester_ref is not None:
        return await service.list_for_requester(requester_ref)
    return await service.list_for_driver(driver_ref)


@router.get(
    "/active",
    response_model=Optional[RequestResponse],
    summary="The requester's accepted / en-route / arrived request, if any",
)
@limiter.limit(settings.rate_limit)
async def get_active_request(
    request: Request,
    requester_ref: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await LifecycleService(db).active_for_requester(requester_ref)


@router.get(
    "/pending",
    response_model=list[RequestResponse],
    summary="Claimable requests, oldest first",
    description=(
        "With ``driver_ref`` the pool is scoped to that driver: an unknown "
        "or unavailable driver gets an empty list."
    ),
)
@limiter.limit(settings.rate_limit)
async def list_pending_requests(
    request: Request,
    driver_ref: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await MatchingService(db).list_pending(driver_ref)


@router.get(
    "/{request_id}",
    response_model=RequestResponse,
    summary="Poll a request's status and driver location",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_request(
    request: Request,
    request_id: str,
    db: AsyncSession = Depends(get_db),
    cache: RequestSnapshotCache = Depends(get_cache),
):
    service = LifecycleService(db)

    async def load() -> dict:
        return _snapshot(await service.get(request_id))

    return await cache.get_or_load(request_id, load)


@router.post(
    "/{request_id}/claim",
    response_model=RequestResponse,
    summary="Claim a pending request",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def claim_request(
    request: Request,
    request_id: str,
    body: ClaimBody,
    db: AsyncSession = Depends(get_db),
    cache: RequestSnapshotCache = Depends(get_cache),
):
    claimed = await LifecycleService(db).claim(
        request_id, body.driver_ref, body.driver_location
    )
    await commit(db)
    await cache.store(_snapshot(claimed))
    return claimed


@router.post(
    "/{request_id}/advance",
    response_model=RequestResponse,
    summary="Advance to the next status",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def advance_request(
    request: Request,
    request_id: str,
    body: AdvanceBody,
    db: AsyncSession = Depends(get_db),
    cache: RequestSnapshotCache = Depends(get_cache),
):
    advanced = await LifecycleService(db).advance(
        request_id, body.driver_ref, body.next_status, body.driver_location
    )
    await commit(db)
    await cache.store(_snapshot(advanced))
    return advanced


@router.post(
    "/{request_id}/cancel",
    response_model=RequestResponse,
    summary="Cancel a request that has not finished",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def cancel_request(
    request: Request,
    request_id: str,
    body: CancelBody,
    db: AsyncSession = Depends(get_db),
    cache: RequestSnapshotCache = Depends(get_cache),
):
    cancelled = await LifecycleService(db).cancel(
        request_id, body.actor_ref, body.reason
    )
    await commit(db)
    await cache.store(_snapshot(cancelled))
    return cancelled


@router.put(
    "/{request_id}/location",
    response_model=RequestResponse,
    summary="Overwrite the driver location snapshot",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def update_request_location(
    request: Request,
    request_id: str,
    body: LocationBody,
    db: AsyncSession = Depends(get_db),
    cache: RequestSnapshotCache = Depends(get_cache),
):
    updated = await LifecycleService(db).update_location(
        request_id, body.location, latitude=body.latitude, longitude=body.longitude
    )
    await commit(db)
    await cache.store(_snapshot(updated))
    return updated
