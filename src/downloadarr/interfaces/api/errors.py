"""Map the domain error taxonomy onto HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from downloadarr.domain.entities.errors import (
    AuthenticationError,
    DownloadarrError,
    DuplicateRequestError,
    InvalidTransitionError,
    NotFoundError,
    RateLimitExceeded,
    TransientNetworkError,
    UnknownExternalError,
    ValidationError,
)

log = structlog.get_logger(__name__)


def error_response(exc: DownloadarrError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": str(exc), "kind": exc.kind.value, "field": exc.field},
        )
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})
    if isinstance(exc, DuplicateRequestError):
        return JSONResponse(
            status_code=409,
            content={"error": str(exc), "existing_request_id": exc.existing_request_id},
        )
    if isinstance(exc, InvalidTransitionError):
        return JSONResponse(status_code=409, content={"error": str(exc)})
    if isinstance(exc, RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"error": str(exc), "retry_after": exc.retry_after},
            headers={"Retry-After": str(exc.retry_after)},
        )
    if isinstance(exc, (AuthenticationError, TransientNetworkError)):
        return JSONResponse(
            status_code=503,
            content={"error": "Service unavailable", "service": exc.service},
        )
    if isinstance(exc, UnknownExternalError):
        log.error("upstream_error", service=exc.service, error=str(exc))
    else:
        log.error("unhandled_domain_error", error=str(exc), type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DownloadarrError)
    async def _handle(_: Request, exc: DownloadarrError) -> JSONResponse:
        return error_response(exc)
