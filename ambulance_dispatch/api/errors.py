"""Map the domain error taxonomy onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ambulance_dispatch.domain.errors import (
    ConflictError,
    DispatchError,
    InvalidTransitionError,
    NotFoundError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[DispatchError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    InvalidTransitionError: 409,
    TransportError: 503,
}


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), 400)
    if status_code >= 500:
        logger.error("Backend failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DispatchError, dispatch_error_handler)
