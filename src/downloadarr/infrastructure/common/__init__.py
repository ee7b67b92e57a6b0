"""Common infrastructure utilities."""

from __future__ import annotations

from .http_errors import from_transport_error, raise_for_status
from .rate_limiter import FixedWindowRateLimiter, client_key

__all__ = [
    "FixedWindowRateLimiter",
    "client_key",
    "from_transport_error",
    "raise_for_status",
]
