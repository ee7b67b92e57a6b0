"""Background acquisition scheduler: search cycles, download sync, reverse scan."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from downloadarr.application.use_cases.acquisition import AcquisitionOrchestrator
from downloadarr.infrastructure.config.schema import AcquisitionConfig
from downloadarr.infrastructure.organize.reverse_index import ReverseIndexer

log = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AcquisitionScheduler:
    """Advances due requests in batches and polls active downloads.

    Call :meth:`run_forever` as an asyncio task during app lifespan.
    Cancellation is clean: the task exits at its current await point.
    """

    def __init__(
        self,
        *,
        orchestrator: AcquisitionOrchestrator,
        config: AcquisitionConfig,
        reverse_indexer: ReverseIndexer | None = None,
        scan_interval_minutes: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config
        self._reverse_indexer = reverse_indexer
        self._scan_interval = timedelta(minutes=scan_interval_minutes)
        self._clock = clock
        self._last_scan: datetime | None = None
        self._tick_lock = asyncio.Lock()

    async def run_forever(self) -> None:
        """Main loop: initial delay, then one tick per check interval."""
        log.info(
            "acquisition_scheduler_started",
            interval_seconds=self._config.check_interval_seconds,
        )
        try:
            await asyncio.sleep(self._config.initial_delay_seconds)
            while True:
                try:
                    await self.tick()
                except Exception:
                    log.error("acquisition_scheduler_tick_error", exc_info=True)
                await asyncio.sleep(self._config.check_interval_seconds)
        except asyncio.CancelledError:
            log.info("acquisition_scheduler_cancelled")
            raise

    async def tick(self) -> None:
        """One pass. A tick still running when the next is due is not doubled."""
        if self._tick_lock.locked():
            log.debug("acquisition_tick_skipped_overlap")
            return
        async with self._tick_lock:
            now = self._clock()
            await self._expire_stale(now)
            await self._run_search_batches(now)
            await self._sync_downloads()
            await self._maybe_scan(now)

    async def _expire_stale(self, now: datetime) -> None:
        try:
            expired = await self._orchestrator.expire_stale(now)
        except Exception:
            log.error("request_expiry_error", exc_info=True)
            return
        if expired:
            log.info("requests_expired", count=expired)

    async def _run_search_batches(self, now: datetime) -> None:
        due = await self._orchestrator.due_requests(now)
        if not due:
            return
        size = max(self._config.batch_size, 1)
        log.info("search_batches_start", due=len(due), batch_size=size)
        for start in range(0, len(due), size):
            if start:
                await asyncio.sleep(self._config.batch_delay_seconds)
            batch = due[start : start + size]
            results = await asyncio.gather(
                *(self._orchestrator.run_search_cycle(r.request_id) for r in batch),
                return_exceptions=True,
            )
            for request, result in zip(batch, results):
                if isinstance(result, Exception):
                    log.error(
                        "search_cycle_error",
                        request_id=request.request_id,
                        error=str(result),
                        exc_info=result,
                    )

    async def _sync_downloads(self) -> None:
        for request in await self._orchestrator.active_downloads():
            try:
                await self._orchestrator.sync_download(request.request_id)
            except Exception:
                log.error(
                    "download_sync_error",
                    request_id=request.request_id,
                    exc_info=True,
                )

    async def _maybe_scan(self, now: datetime) -> None:
        if self._reverse_indexer is None:
            return
        if self._last_scan is not None and now - self._last_scan < self._scan_interval:
            return
        self._last_scan = now
        try:
            await self._reverse_indexer.scan()
        except Exception:
            log.error("reverse_index_scan_error", exc_info=True)
