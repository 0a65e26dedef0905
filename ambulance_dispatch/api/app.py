"""
FastAPI application factory.

* Registers routes for requests, drivers and admin.
* Maps the domain error taxonomy onto HTTP status codes.
* Applies rate-limiting.
* Closes the shared Redis pool on shutdown.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ambulance_dispatch.api.errors import register_error_handlers
from ambulance_dispatch.api.middleware import limiter
from ambulance_dispatch.api.routes import admin, drivers, requests
from ambulance_dispatch.config import settings
from ambulance_dispatch.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ambulance Dispatch API",
        description=(
            "Emergency transport requests from submission through driver "
            "claim to completion.  Drivers see a first-come pool of "
            "pending requests; requesters poll status and driver location."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # Routers
    app.include_router(requests.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
