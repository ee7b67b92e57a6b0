"""Map httpx failures onto the domain error taxonomy."""

from __future__ import annotations

import httpx

from downloadarr.domain.entities.errors import (
    AuthenticationError,
    ExternalServiceError,
    NotFoundError,
    RateLimitExceeded,
    TransientNetworkError,
    UnknownExternalError,
)

_TRANSIENT_STATUSES = frozenset({502, 503, 504})
_DEFAULT_RETRY_AFTER = 60


def _retry_after(resp: httpx.Response) -> int:
    raw = resp.headers.get("Retry-After", "")
    try:
        return max(0, int(raw))
    except ValueError:
        return _DEFAULT_RETRY_AFTER


def raise_for_status(resp: httpx.Response, *, service: str) -> None:
    """Raise the taxonomy error matching a non-success status."""
    code = resp.status_code
    if code < 400:
        return
    if code in (401, 403):
        raise AuthenticationError(
            f"{service} rejected the credentials (HTTP {code})", service=service
        )
    if code == 404:
        raise NotFoundError(f"{service}: resource not found")
    if code == 429:
        raise RateLimitExceeded(
            f"{service} rate limit exceeded", retry_after=_retry_after(resp)
        )
    if code in _TRANSIENT_STATUSES:
        raise TransientNetworkError(
            f"{service} temporarily unavailable (HTTP {code})", service=service
        )
    raise UnknownExternalError(f"{service} returned HTTP {code}", service=service)


def from_transport_error(exc: httpx.HTTPError, *, service: str) -> ExternalServiceError:
    """Timeouts and connection failures are transient, everything else unknown."""
    if isinstance(exc, httpx.TimeoutException):
        return TransientNetworkError(f"{service} timed out", service=service)
    if isinstance(exc, httpx.TransportError):
        return TransientNetworkError(f"{service} unreachable: {exc}", service=service)
    return UnknownExternalError(f"{service} request failed", service=service)
