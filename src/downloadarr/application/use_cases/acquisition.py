"""Acquisition use case: search, rank, select, submit and track a request.

State machine per request::

    searching -> downloading -> completed
        |             |
        +-> failed <--+        (any non-terminal state) -> cancelled
        |
        +-> expired              (still searching past ``expires_at``)

``downloading`` falls back to ``searching`` when the engine reports the
job as failed or gone. Every search cycle counts one attempt; once
``max_search_attempts`` is exhausted the request is ``failed``. Retries
use the fixed ``search_interval_mins``, never a growing backoff.

A new request is rejected while another one with the same
``duplicate_key`` has not ended in failure, cancellation or expiry.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Protocol
from uuid import uuid4

import structlog

from downloadarr.domain.entities.acquisition import (
    AcquisitionRequest,
    DownloadJob,
    DownloadState,
    RequestStatus,
    ScoredCandidate,
    SearchQuery,
    TorrentCandidate,
)
from downloadarr.domain.entities.errors import (
    DownloadarrError,
    DuplicateRequestError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
    ValidationErrorKind,
)
from downloadarr.domain.entities.health import NetworkPath
from downloadarr.domain.entities.preferences import ContentType, TorrentPreferences
from downloadarr.domain.ports.download_engine import DownloadEnginePort
from downloadarr.domain.ports.indexer import IndexerPort
from downloadarr.domain.ports.library import CompletedDownloadSink
from downloadarr.domain.ports.network_health import NetworkHealthPort
from downloadarr.domain.ports.request_repository import AcquisitionRequestRepository

log = structlog.get_logger(__name__)

# Ranked candidates kept on a request for manual selection.
MAX_STORED_CANDIDATES = 25

_DOWNLOAD_SUBDIRS: dict[ContentType, str] = {
    ContentType.MOVIE: "movies",
    ContentType.TV_SHOW: "tv-shows",
    ContentType.GAME: "games",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its collaborators.
# ---------------------------------------------------------------------------


class _AcquisitionSettings(Protocol):
    search_interval_mins: int
    first_search_delay_mins: int
    max_search_attempts: int
    request_ttl_days: int


class _Ranker(Protocol):
    def rank(self, candidates: Sequence[TorrentCandidate]) -> list[ScoredCandidate]: ...


class _PreferencesReader(Protocol):
    async def get(self) -> TorrentPreferences: ...


def download_directory(download_root: str, content_type: ContentType) -> str:
    return str(PurePosixPath(download_root) / _DOWNLOAD_SUBDIRS[content_type])


_DUPLICATE_BLOCKING_EXCLUDED = frozenset(
    {RequestStatus.FAILED, RequestStatus.CANCELLED, RequestStatus.EXPIRED}
)


def duplicate_key(
    content_type: ContentType,
    title: str,
    *,
    year: int | None = None,
    season: int | None = None,
    episode: int | None = None,
    platform: str | None = None,
) -> tuple[object, ...]:
    """Identity of a request for duplicate detection, per content type."""
    name = title.strip().casefold()
    if content_type == ContentType.TV_SHOW:
        return (content_type, name, season, episode)
    if content_type == ContentType.GAME:
        return (content_type, name, (platform or "").strip().casefold(), year)
    return (content_type, name, year)


def completed_folder(job: DownloadJob, fallback: str | None) -> str | None:
    """Top-level folder (or single file) a finished job wrote under its dir."""
    if job.directory and job.files:
        base = PurePosixPath(job.directory)
        first = PurePosixPath(job.files[0])
        try:
            relative = first.relative_to(base)
        except ValueError:
            return str(first.parent)
        return str(base / relative.parts[0])
    return job.directory or fallback


class AcquisitionOrchestrator:
    """Advances AcquisitionRequests through search, selection and download.

    A per-request ``asyncio.Lock`` serialises cycles, selection, sync and
    cancellation for one request; different requests never share a lock.
    Locks live only while some call holds or awaits them.
    """

    def __init__(
        self,
        *,
        repository: AcquisitionRequestRepository,
        preferences: _PreferencesReader,
        indexers: Sequence[IndexerPort],
        health: NetworkHealthPort,
        engine: DownloadEnginePort,
        ranker_factory: Callable[[TorrentPreferences], _Ranker],
        settings: _AcquisitionSettings,
        download_root: str,
        organizer: CompletedDownloadSink | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._preferences = preferences
        self._indexers = list(indexers)
        self._health = health
        self._engine = engine
        self._ranker_factory = ranker_factory
        self._settings = settings
        self._download_root = download_root
        self._organizer = organizer
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._create_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    async def create_request(
        self,
        *,
        title: str,
        content_type: ContentType | str,
        year: int | None = None,
        season: int | None = None,
        episode: int | None = None,
        platform: str | None = None,
        priority: int = 5,
    ) -> AcquisitionRequest:
        """Validate and persist a new request; the first search is scheduled
        ``first_search_delay_mins`` from now with a preferences snapshot."""
        if not isinstance(title, str) or not title.strip():
            raise ValidationError(
                ValidationErrorKind.INVALID_VALUE, "title is required", field="title"
            )
        try:
            kind = ContentType.parse(content_type)
        except ValueError as e:
            raise ValidationError(
                ValidationErrorKind.INVALID_VALUE, str(e), field="content_type"
            ) from e
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ValidationError(
                ValidationErrorKind.INVALID_VALUE,
                "priority must be an integer",
                field="priority",
            )
        if not 1 <= priority <= 10:
            raise ValidationError(
                ValidationErrorKind.INVALID_VALUE,
                "priority must be between 1 and 10",
                field="priority",
            )
        for name, value in (("year", year), ("season", season), ("episode", episode)):
            if value is not None and (isinstance(value, bool) or value < 0):
                raise ValidationError(
                    ValidationErrorKind.INVALID_VALUE,
                    f"{name} must be a non-negative integer",
                    field=name,
                )

        key = duplicate_key(
            kind, title, year=year, season=season, episode=episode, platform=platform
        )
        preferences = await self._preferences.get()
        async with self._create_lock:
            existing = await self._find_duplicate(key)
            if existing is not None:
                log.info(
                    "request_duplicate_rejected",
                    title=title.strip(),
                    existing_request_id=existing.request_id,
                    status=existing.status.value,
                )
                raise DuplicateRequestError(
                    f"'{existing.title}' is already requested "
                    f"(status '{existing.status.value}')",
                    existing_request_id=existing.request_id,
                )

            now = self._clock()
            request = AcquisitionRequest(
                request_id=uuid4().hex,
                title=title.strip(),
                content_type=kind,
                preferences=preferences,
                year=year,
                season=season,
                episode=episode,
                platform=platform.strip() if platform else None,
                priority=priority,
                max_search_attempts=self._settings.max_search_attempts,
                search_interval_mins=self._settings.search_interval_mins,
                next_search_at=now
                + timedelta(minutes=self._settings.first_search_delay_mins),
                created_at=now,
                updated_at=now,
                expires_at=now + timedelta(days=self._settings.request_ttl_days),
            )
            await self._repo.save(request)
        log.info(
            "request_created",
            request_id=request.request_id,
            title=request.title,
            content_type=kind.value,
        )
        return request

    async def get_request(self, request_id: str) -> AcquisitionRequest:
        request = await self._repo.get(request_id)
        if request is None:
            raise NotFoundError(f"Request '{request_id}' not found")
        return request

    async def list_requests(
        self, statuses: Sequence[RequestStatus] | None = None
    ) -> list[AcquisitionRequest]:
        requests = await self._repo.list_all(statuses)
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    async def due_requests(self, now: datetime | None = None) -> list[AcquisitionRequest]:
        """Searching requests whose next search time has passed.

        Highest priority first, then the longest-waiting.
        """
        now = now or self._clock()
        due = [
            r
            for r in await self._repo.list_all([RequestStatus.SEARCHING])
            if r.next_search_at is None or r.next_search_at <= now
        ]
        return sorted(
            due,
            key=lambda r: (-r.priority, r.next_search_at or r.created_at),
        )

    async def active_downloads(self) -> list[AcquisitionRequest]:
        return await self._repo.list_all([RequestStatus.DOWNLOADING])

    async def expire_stale(self, now: datetime | None = None) -> int:
        """Move searching requests past ``expires_at`` to ``expired``.

        Downloads in flight are left alone. Returns how many expired.
        """
        now = now or self._clock()
        expired = 0
        for candidate in await self._repo.list_all([RequestStatus.SEARCHING]):
            if candidate.expires_at is None or candidate.expires_at > now:
                continue
            async with self._request_lock(candidate.request_id):
                request = await self._repo.get(candidate.request_id)
                if request is None or not self._is_expired(request, now):
                    continue
                await self._expire(request, now)
                expired += 1
        return expired

    # ------------------------------------------------------------------
    # Search / select / submit
    # ------------------------------------------------------------------

    async def run_search_cycle(self, request_id: str) -> AcquisitionRequest:
        """One search cycle: query, filter+rank, then auto-select or wait."""
        async with self._request_lock(request_id):
            request = await self.get_request(request_id)
            if request.status != RequestStatus.SEARCHING:
                log.debug(
                    "search_cycle_skipped",
                    request_id=request_id,
                    status=request.status.value,
                )
                return request

            now = self._clock()
            if self._is_expired(request, now):
                return await self._expire(request, now)
            candidates, failures = await self._search_all(request.to_search_query())
            ranked = self._ranker_factory(request.preferences).rank(candidates)
            request = replace(
                request,
                search_attempts=request.search_attempts + 1,
                last_searched_at=now,
                candidates=ranked[:MAX_STORED_CANDIDATES],
                updated_at=now,
            )
            log.info(
                "search_cycle_done",
                request_id=request_id,
                attempt=request.search_attempts,
                found=len(candidates),
                viable=len(ranked),
                failed_indexers=len(failures),
            )

            if not ranked:
                if failures and not candidates:
                    reason = "Indexers unavailable: " + "; ".join(failures)
                else:
                    reason = "No viable candidates found"
                return await self._retry_later(request, reason, now)

            if not request.preferences.auto_select_best:
                request = replace(
                    request,
                    next_search_at=self._next_search(request, now),
                    last_error=None,
                )
                await self._repo.save(request)
                log.info(
                    "request_awaiting_selection",
                    request_id=request_id,
                    candidates=len(request.candidates),
                )
                return request

            return await self._submit(request, ranked[0].candidate, now)

    async def select_candidate(self, request_id: str, index: int) -> AcquisitionRequest:
        """Manually pick one of the stored ranked candidates and submit it."""
        async with self._request_lock(request_id):
            request = await self.get_request(request_id)
            if request.status != RequestStatus.SEARCHING:
                raise InvalidTransitionError(
                    f"Cannot select a candidate for a request in status "
                    f"'{request.status.value}'"
                )
            if not 0 <= index < len(request.candidates):
                raise ValidationError(
                    ValidationErrorKind.INVALID_VALUE,
                    f"Candidate index {index} is out of range",
                    field="index",
                )
            candidate = request.candidates[index].candidate
            return await self._submit(request, candidate, self._clock())

    async def _submit(
        self,
        request: AcquisitionRequest,
        candidate: TorrentCandidate,
        now: datetime,
    ) -> AcquisitionRequest:
        existing = await self._still_active_job(request)
        if existing is not None:
            request = replace(
                request,
                status=RequestStatus.DOWNLOADING,
                progress=existing.progress,
                next_search_at=None,
                updated_at=now,
            )
            await self._repo.save(request)
            log.info(
                "download_already_active",
                request_id=request.request_id,
                job_id=existing.job_id,
            )
            return request

        path = await self._health.select_path()
        if path is None:
            return await self._retry_later(
                replace(request, selected=candidate),
                "No healthy network path to the download engine",
                now,
            )

        directory = download_directory(self._download_root, request.content_type)
        try:
            job_id = await self._engine.submit(
                candidate.download_uri, directory, path=path
            )
        except DownloadarrError as exc:
            log.warning(
                "download_submit_failed",
                request_id=request.request_id,
                error=str(exc),
            )
            return await self._retry_later(
                replace(request, selected=candidate),
                f"Submission failed: {exc}",
                now,
            )

        request = replace(
            request,
            status=RequestStatus.DOWNLOADING,
            selected=candidate,
            download_job_id=job_id,
            download_path=directory,
            network_path=path,
            progress=0.0,
            next_search_at=None,
            last_error=None,
            updated_at=now,
        )
        await self._repo.save(request)
        log.info(
            "download_started",
            request_id=request.request_id,
            job_id=job_id,
            title=candidate.title,
            path=path.value,
        )
        return request

    async def _still_active_job(self, request: AcquisitionRequest) -> DownloadJob | None:
        if not request.download_job_id:
            return None
        try:
            job = await self._engine.status(
                request.download_job_id,
                path=request.network_path or NetworkPath.DIRECT,
            )
        except DownloadarrError:
            return None
        return job if job.is_active else None

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def sync_download(self, request_id: str) -> AcquisitionRequest:
        """Poll the engine and move the request on accordingly."""
        async with self._request_lock(request_id):
            request = await self.get_request(request_id)
            if request.status != RequestStatus.DOWNLOADING or not request.download_job_id:
                return request

            now = self._clock()
            try:
                job: DownloadJob | None = await self._engine.status(
                    request.download_job_id,
                    path=request.network_path or NetworkPath.DIRECT,
                )
            except NotFoundError:
                job = None
            except ExternalServiceError as exc:
                log.warning(
                    "download_status_unavailable",
                    request_id=request_id,
                    error=str(exc),
                )
                request = replace(request, last_error=str(exc), updated_at=now)
                await self._repo.save(request)
                return request

            if job is not None and job.state == DownloadState.COMPLETE:
                return await self._complete(request, job, now)

            if job is None or job.state in (DownloadState.ERROR, DownloadState.REMOVED):
                reason = (job.error_message if job else None) or "Download vanished"
                log.warning("download_failed", request_id=request_id, reason=reason)
                request = replace(
                    request,
                    status=RequestStatus.SEARCHING,
                    progress=0.0,
                    updated_at=now,
                )
                return await self._retry_later(request, reason, now)

            request = replace(request, progress=job.progress, updated_at=now)
            await self._repo.save(request)
            return request

    async def _complete(
        self, request: AcquisitionRequest, job: DownloadJob, now: datetime
    ) -> AcquisitionRequest:
        request = replace(
            request,
            status=RequestStatus.COMPLETED,
            progress=100.0,
            completed_at=now,
            updated_at=now,
            last_error=None,
        )
        await self._repo.save(request)
        log.info("download_completed", request_id=request.request_id)

        folder = completed_folder(job, request.download_path)
        if self._organizer is not None and folder:
            try:
                await self._organizer.ingest_completed(
                    folder, request.content_type, [request]
                )
            except (DownloadarrError, OSError) as exc:
                log.error(
                    "organize_handoff_failed",
                    request_id=request.request_id,
                    folder=folder,
                    error=str(exc),
                )
        return request

    async def cancel_request(self, request_id: str) -> AcquisitionRequest:
        """Stop future cycles and try to remove an active download.

        A job that already finished or vanished is not an error.
        """
        async with self._request_lock(request_id):
            request = await self.get_request(request_id)
            if request.status == RequestStatus.CANCELLED:
                return request
            if request.is_terminal:
                raise InvalidTransitionError(
                    f"Cannot cancel a request in status '{request.status.value}'"
                )

            if request.status == RequestStatus.DOWNLOADING and request.download_job_id:
                try:
                    await self._engine.cancel(
                        request.download_job_id,
                        path=request.network_path or NetworkPath.DIRECT,
                    )
                except NotFoundError:
                    log.info(
                        "download_already_gone",
                        request_id=request_id,
                        job_id=request.download_job_id,
                    )
                except ExternalServiceError as exc:
                    log.warning(
                        "download_cancel_failed",
                        request_id=request_id,
                        error=str(exc),
                    )

            now = self._clock()
            request = replace(
                request,
                status=RequestStatus.CANCELLED,
                next_search_at=None,
                updated_at=now,
            )
            await self._repo.save(request)
            log.info("request_cancelled", request_id=request_id)
            return request

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _request_lock(self, request_id: str) -> AsyncIterator[None]:
        """Hold the lock of one request; the entry is dropped once nobody
        holds or waits for it."""
        lock = self._locks.get(request_id)
        if lock is None:
            lock = self._locks[request_id] = asyncio.Lock()
        self._lock_users[request_id] = self._lock_users.get(request_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[request_id] -= 1
            if not self._lock_users[request_id]:
                del self._lock_users[request_id]
                self._locks.pop(request_id, None)

    async def _find_duplicate(
        self, key: tuple[object, ...]
    ) -> AcquisitionRequest | None:
        for existing in await self._repo.list_all():
            if existing.status in _DUPLICATE_BLOCKING_EXCLUDED:
                continue
            existing_key = duplicate_key(
                existing.content_type,
                existing.title,
                year=existing.year,
                season=existing.season,
                episode=existing.episode,
                platform=existing.platform,
            )
            if existing_key == key:
                return existing
        return None

    @staticmethod
    def _is_expired(request: AcquisitionRequest, now: datetime) -> bool:
        return (
            request.status == RequestStatus.SEARCHING
            and request.expires_at is not None
            and request.expires_at <= now
        )

    async def _expire(
        self, request: AcquisitionRequest, now: datetime
    ) -> AcquisitionRequest:
        request = replace(
            request,
            status=RequestStatus.EXPIRED,
            next_search_at=None,
            last_error="Request expired before a download started",
            updated_at=now,
        )
        await self._repo.save(request)
        log.info(
            "request_expired",
            request_id=request.request_id,
            attempts=request.search_attempts,
        )
        return request

    @staticmethod
    def _next_search(request: AcquisitionRequest, now: datetime) -> datetime:
        return now + timedelta(minutes=request.search_interval_mins)

    async def _retry_later(
        self, request: AcquisitionRequest, reason: str, now: datetime
    ) -> AcquisitionRequest:
        """Stay in ``searching`` for another interval, or fail when exhausted."""
        if request.search_attempts >= request.max_search_attempts:
            request = replace(
                request,
                status=RequestStatus.FAILED,
                next_search_at=None,
                last_error=f"{reason} (after {request.search_attempts} attempts)",
                updated_at=now,
            )
            await self._repo.save(request)
            log.warning(
                "request_failed",
                request_id=request.request_id,
                attempts=request.search_attempts,
                reason=reason,
            )
            return request

        request = replace(
            request,
            status=RequestStatus.SEARCHING,
            next_search_at=self._next_search(request, now),
            last_error=reason,
            updated_at=now,
        )
        await self._repo.save(request)
        log.info(
            "search_retry_scheduled",
            request_id=request.request_id,
            next_search_at=request.next_search_at.isoformat(),
            reason=reason,
        )
        return request

    async def _search_all(
        self, query: SearchQuery
    ) -> tuple[list[TorrentCandidate], list[str]]:
        """Query every indexer concurrently; one failing indexer does not
        abort the others."""

        async def _one(indexer: IndexerPort) -> tuple[list[TorrentCandidate], str | None]:
            try:
                return await indexer.search(query), None
            except RateLimitExceeded as exc:
                log.info(
                    "indexer_throttled",
                    indexer=indexer.name,
                    retry_after=exc.retry_after,
                )
                return [], f"{indexer.name}: throttled"
            except DownloadarrError as exc:
                log.warning("indexer_search_failed", indexer=indexer.name, error=str(exc))
                return [], f"{indexer.name}: {exc}"
            except Exception:  # noqa: BLE001
                log.exception("indexer_search_crashed", indexer=indexer.name)
                return [], f"{indexer.name}: unexpected error"

        results = await asyncio.gather(*(_one(i) for i in self._indexers))
        candidates: list[TorrentCandidate] = []
        failures: list[str] = []
        for found, failure in results:
            candidates.extend(found)
            if failure:
                failures.append(failure)
        return candidates, failures
