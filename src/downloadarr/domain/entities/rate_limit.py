"""Rate limiting value objects."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitRule:
    """Explicit per-operation limit: ``limit`` calls per ``window_ms``."""

    limit: int
    window_ms: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch milliseconds
    retry_after: int = 0  # whole seconds until reset_at, 0 when allowed
