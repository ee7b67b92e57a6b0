"""Tests for AcquisitionScheduler."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from downloadarr.infrastructure.acquisition.scheduler import AcquisitionScheduler
from downloadarr.infrastructure.config.schema import AcquisitionConfig


def _req(request_id: str):
    r = AsyncMock()
    r.request_id = request_id
    return r


@pytest.fixture()
def orchestrator() -> AsyncMock:
    o = AsyncMock()
    o.due_requests = AsyncMock(return_value=[])
    o.active_downloads = AsyncMock(return_value=[])
    o.expire_stale = AsyncMock(return_value=0)
    return o


@pytest.fixture()
def reverse_indexer() -> AsyncMock:
    r = AsyncMock()
    r.scan = AsyncMock(return_value=0)
    return r


def _scheduler(orchestrator, reverse_indexer=None, clock=None, **config):
    return AcquisitionScheduler(
        orchestrator=orchestrator,
        config=AcquisitionConfig(**config),
        reverse_indexer=reverse_indexer,
        scan_interval_minutes=60,
        **({"clock": clock} if clock else {}),
    )


class TestTick:
    async def test_runs_due_requests_in_batches(self, orchestrator) -> None:
        orchestrator.due_requests.return_value = [_req(f"r{i}") for i in range(5)]
        scheduler = _scheduler(orchestrator, batch_size=2, batch_delay_seconds=0.5)

        with patch(
            "downloadarr.infrastructure.acquisition.scheduler.asyncio.sleep",
            new=AsyncMock(),
        ) as sleep:
            await scheduler.tick()

        ids = [c.args[0] for c in orchestrator.run_search_cycle.await_args_list]
        assert ids == ["r0", "r1", "r2", "r3", "r4"]
        # Three batches, two pauses between them.
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)

    async def test_cycle_error_does_not_stop_batch(self, orchestrator) -> None:
        orchestrator.due_requests.return_value = [_req("bad"), _req("good")]
        orchestrator.run_search_cycle.side_effect = [RuntimeError("boom"), None]

        await _scheduler(orchestrator).tick()

        assert orchestrator.run_search_cycle.await_count == 2

    async def test_expires_stale_requests_before_searching(
        self, orchestrator, now
    ) -> None:
        calls: list[str] = []
        orchestrator.expire_stale.side_effect = lambda _now: calls.append("expire") or 1
        orchestrator.due_requests.side_effect = lambda _now: calls.append("due") or []

        await _scheduler(orchestrator, clock=lambda: now).tick()

        orchestrator.expire_stale.assert_awaited_once_with(now)
        assert calls == ["expire", "due"]

    async def test_expiry_error_does_not_block_searches(self, orchestrator) -> None:
        orchestrator.expire_stale.side_effect = RuntimeError("cache down")
        orchestrator.due_requests.return_value = [_req("r1")]

        await _scheduler(orchestrator).tick()

        assert orchestrator.run_search_cycle.await_count == 1

    async def test_syncs_active_downloads(self, orchestrator) -> None:
        orchestrator.active_downloads.return_value = [_req("d1"), _req("d2")]
        orchestrator.sync_download.side_effect = [RuntimeError("x"), None]

        await _scheduler(orchestrator).tick()

        assert orchestrator.sync_download.await_count == 2

    async def test_reverse_scan_respects_interval(
        self, orchestrator, reverse_indexer, now
    ) -> None:
        times = iter([now, now + timedelta(minutes=10), now + timedelta(minutes=61)])
        scheduler = _scheduler(orchestrator, reverse_indexer, clock=lambda: next(times))

        await scheduler.tick()
        await scheduler.tick()
        await scheduler.tick()

        assert reverse_indexer.scan.await_count == 2

    async def test_overlapping_tick_is_skipped(self, orchestrator) -> None:
        gate = asyncio.Event()

        async def _slow(_now):
            await gate.wait()
            return []

        orchestrator.due_requests.side_effect = _slow
        scheduler = _scheduler(orchestrator)

        first = asyncio.create_task(scheduler.tick())
        await asyncio.sleep(0)
        await scheduler.tick()
        gate.set()
        await first

        assert orchestrator.due_requests.await_count == 1


class TestRunForever:
    async def test_cancellation_propagates(self, orchestrator) -> None:
        scheduler = _scheduler(
            orchestrator, initial_delay_seconds=0, check_interval_seconds=1
        )
        task = asyncio.create_task(scheduler.run_forever())
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert orchestrator.due_requests.await_count >= 1
