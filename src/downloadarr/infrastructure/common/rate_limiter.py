"""Fixed-window rate limiter over opaque keys.

Used for inbound API calls (key = caller identity + route) and for
outbound calls to indexers and health endpoints (key = service name).
The limiter only does bookkeeping; key derivation is the caller's policy.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from downloadarr.domain.entities.rate_limit import RateLimitDecision, RateLimitRule

log = structlog.get_logger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class _Window:
    count: int
    reset_at: float


def client_key(ip: str, user_agent: str, method: str, route: str) -> str:
    """Caller identity + endpoint, e.g. ``10.0.0.1:curl/8:GET:/api/v1/queue``."""
    return f"{ip}:{user_agent}:{method.upper()}:{route}"


class FixedWindowRateLimiter:
    """Per-key request counter with a fixed reset time.

    - First call for a key (or first call after the window expired) opens a
      new window: ``count=1, reset_at=now+window_ms``.
    - A call is rejected once ``count >= limit``; rejected calls do not
      increment the counter.
    - Expired windows are purged on every call.

    Purge, check and increment happen under one ``asyncio.Lock`` so two
    concurrent callers cannot both pass at the limit boundary. The lock is
    never held across I/O.

    Args:
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(self, clock: Callable[[], float] = _now_ms) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def allow(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        """Count one call for *key* and decide whether it may proceed."""
        async with self._lock:
            now = self._clock()
            self._purge(now)

            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + window_ms)
                self._windows[key] = window

            if window.count >= limit:
                retry_after = max(0, math.ceil((window.reset_at - now) / 1000))
                log.debug(
                    "rate_limit_rejected",
                    key=key,
                    limit=limit,
                    retry_after=retry_after,
                )
                return RateLimitDecision(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after=retry_after,
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=max(0, limit - window.count),
                reset_at=window.reset_at,
            )

    async def check(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        return await self.allow(key, rule.limit, rule.window_ms)

    def _purge(self, now: float) -> None:
        stale = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in stale:
            del self._windows[k]
