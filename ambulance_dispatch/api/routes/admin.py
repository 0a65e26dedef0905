"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health -- liveness, a database round-trip and a Redis ping
"""

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_dispatch.api.dependencies import get_db
from ambulance_dispatch.api.schemas import ErrorResponse, HealthResponse
from ambulance_dispatch.infrastructure.database import backend_errors
from ambulance_dispatch.infrastructure.redis_client import get_redis, ping_redis

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description=(
        "503 when the database is unreachable.  A Redis outage only "
        "degrades caching and location feeds, so it is reported but "
        "does not fail the check."
    ),
    responses={503: {"model": ErrorResponse}},
)
async def health(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    with backend_errors():
        await db.execute(text("SELECT 1"))
    redis_ok = await ping_redis(redis)
    return HealthResponse(redis="ok" if redis_ok else "unavailable")
