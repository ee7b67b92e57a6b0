"""Tests for FixedWindowRateLimiter."""

from __future__ import annotations

import asyncio

import pytest

from downloadarr.domain.entities.rate_limit import RateLimitRule
from downloadarr.infrastructure.common.rate_limiter import (
    FixedWindowRateLimiter,
    client_key,
)


class FakeClock:
    def __init__(self, start_ms: float = 1_000_000.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(clock=clock)


class TestAllow:
    async def test_first_call_opens_window(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        decision = await limiter.allow("k", limit=3, window_ms=60_000)
        assert decision.allowed is True
        assert decision.remaining == 2
        assert decision.reset_at == clock.now_ms + 60_000
        assert decision.retry_after == 0

    async def test_n_plus_first_call_is_rejected(
        self, limiter: FixedWindowRateLimiter
    ) -> None:
        for _ in range(3):
            assert (await limiter.allow("k", 3, 60_000)).allowed is True

        decision = await limiter.allow("k", 3, 60_000)
        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.retry_after == 60

    async def test_retry_after_rounds_up(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        await limiter.allow("k", 1, 10_000)
        clock.advance(8_500)
        decision = await limiter.allow("k", 1, 10_000)
        assert decision.allowed is False
        assert decision.retry_after == 2

    async def test_window_expiry_resets_counter(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        await limiter.allow("k", 1, 1_000)
        assert (await limiter.allow("k", 1, 1_000)).allowed is False

        clock.advance(1_000)
        decision = await limiter.allow("k", 1, 1_000)
        assert decision.allowed is True
        assert decision.remaining == 0

    async def test_rejected_calls_do_not_extend_window(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        first = await limiter.allow("k", 1, 1_000)
        clock.advance(500)
        rejected = await limiter.allow("k", 1, 1_000)
        assert rejected.reset_at == first.reset_at

    async def test_keys_are_independent(
        self, limiter: FixedWindowRateLimiter
    ) -> None:
        await limiter.allow("a", 1, 1_000)
        assert (await limiter.allow("a", 1, 1_000)).allowed is False
        assert (await limiter.allow("b", 1, 1_000)).allowed is True

    async def test_expired_entries_are_purged(
        self, limiter: FixedWindowRateLimiter, clock: FakeClock
    ) -> None:
        await limiter.allow("a", 5, 1_000)
        await limiter.allow("b", 5, 1_000)
        assert len(limiter) == 2

        clock.advance(2_000)
        await limiter.allow("c", 5, 1_000)
        assert len(limiter) == 1

    async def test_check_uses_rule(self, limiter: FixedWindowRateLimiter) -> None:
        rule = RateLimitRule(limit=2, window_ms=5_000)
        assert (await limiter.check("k", rule)).remaining == 1
        assert (await limiter.check("k", rule)).remaining == 0
        assert (await limiter.check("k", rule)).allowed is False


class TestConcurrency:
    async def test_concurrent_callers_never_exceed_limit(
        self, limiter: FixedWindowRateLimiter
    ) -> None:
        decisions = await asyncio.gather(
            *(limiter.allow("shared", 5, 60_000) for _ in range(20))
        )
        assert sum(d.allowed for d in decisions) == 5


class TestClientKey:
    def test_combines_identity_and_route(self) -> None:
        key = client_key("10.0.0.1", "curl/8.0", "get", "/api/v1/organize/queue")
        assert key == "10.0.0.1:curl/8.0:GET:/api/v1/organize/queue"
