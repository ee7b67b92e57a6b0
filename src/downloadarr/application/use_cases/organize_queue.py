"""Use case: match completed downloads to library entries, queue the rest.

Item state machine::

    PENDING -> PROCESSING -> COMPLETED
       |           |
       |           +-> PENDING   (recoverable placement failure)
       |           +-> FAILED    (non-recoverable placement failure)
       +-> SKIPPED

``delete`` removes an item from any state without touching placed files.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Protocol
from uuid import uuid4

import structlog

from downloadarr.domain.entities.errors import (
    DownloadarrError,
    InvalidTransitionError,
    NotFoundError,
)
from downloadarr.domain.entities.organize import (
    ACTIONABLE_STATUSES,
    DetectedMetadata,
    LibraryEntry,
    OrganizeOverrides,
    OrganizeQueueItem,
    OrganizeStatus,
    PlacementResult,
    PlacementTarget,
    QueueStats,
)
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.domain.ports.library import (
    ExpectedTitle,
    LibraryEntryRepository,
    LibraryPlacementPort,
)
from downloadarr.domain.ports.organize_repository import OrganizeQueueRepository

log = structlog.get_logger(__name__)

FolderParser = Callable[[str, ContentType], DetectedMetadata]
DirectoryMatcher = Callable[[str, str, "int | None"], bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _OrganizeSettings(Protocol):
    delete_completed: bool


def resolve_target(
    detected: DetectedMetadata, overrides: OrganizeOverrides | None
) -> PlacementTarget:
    """Overrides win field by field; ``None`` keeps the detected value."""
    o = overrides or OrganizeOverrides()
    return PlacementTarget(
        title=(o.title.strip() if o.title else None) or detected.title,
        year=o.year if o.year is not None else detected.year,
        season=o.season if o.season is not None else detected.season,
        platform=(o.platform.strip() if o.platform else None) or detected.platform,
    )


def merge_overrides(
    base: OrganizeOverrides | None, overrides: OrganizeOverrides | None
) -> OrganizeOverrides | None:
    """Field-wise merge; a ``None`` field in *overrides* keeps *base*."""
    if overrides is None:
        return base
    if base is None:
        return overrides
    return OrganizeOverrides(
        title=overrides.title if overrides.title is not None else base.title,
        year=overrides.year if overrides.year is not None else base.year,
        season=overrides.season if overrides.season is not None else base.season,
        platform=(
            overrides.platform if overrides.platform is not None else base.platform
        ),
    )


def _target_for_expected(
    expected: ExpectedTitle, detected: DetectedMetadata
) -> PlacementTarget:
    return PlacementTarget(
        title=expected.title,
        year=expected.year if expected.year is not None else detected.year,
        season=expected.season if expected.season is not None else detected.season,
        platform=expected.platform or detected.platform,
    )


def library_entry_id(content_type: ContentType, target: PlacementTarget) -> str:
    """Stable id, so placing the same title twice keeps one entry."""
    key = "|".join(
        str(v)
        for v in (
            content_type.value,
            (target.title or "").lower(),
            target.year,
            target.season,
            (target.platform or "").lower(),
        )
    )
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


class OrganizeQueue:
    """Automatic matching plus the manual-resolution queue.

    Transitions on a single item are serialised by a per-item lock;
    different items proceed in parallel.
    """

    def __init__(
        self,
        *,
        repository: OrganizeQueueRepository,
        placer: LibraryPlacementPort,
        parse_folder: FolderParser,
        matches_directory: DirectoryMatcher,
        settings: _OrganizeSettings,
        library: LibraryEntryRepository | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._library = library
        self._placer = placer
        self._parse_folder = parse_folder
        self._matches = matches_directory
        self._settings = settings
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._ingest_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_completed(
        self,
        folder_path: str,
        content_type: ContentType,
        expected: Sequence[ExpectedTitle],
    ) -> bool:
        """Place *folder_path* automatically when it matches exactly one
        expected title; otherwise queue it for a manual decision.

        Returns True when the folder was placed without queueing.
        """
        async with self._ingest_lock:
            existing = await self._repo.get_by_folder(folder_path)
            if existing is not None:
                return await self._requeue(existing)

            name = PurePath(folder_path).name
            detected = self._parse_folder(name, content_type)
            matched = self._match_expected(name, detected, content_type, expected)

            if matched is not None:
                target = _target_for_expected(matched, detected)
                result = await self._place(folder_path, content_type, target)
                if result.ok:
                    log.info(
                        "organize_auto_placed",
                        folder=folder_path,
                        title=matched.title,
                        target=result.target_path,
                    )
                    return True
                status = (
                    OrganizeStatus.PENDING if result.recoverable else OrganizeStatus.FAILED
                )
                await self._enqueue(
                    folder_path,
                    content_type,
                    detected,
                    status=status,
                    error=result.error,
                    selected=OrganizeOverrides(
                        title=target.title,
                        year=target.year,
                        season=target.season,
                        platform=target.platform,
                    ),
                )
                return False

            await self._enqueue(folder_path, content_type, detected)
            return False

    def _match_expected(
        self,
        name: str,
        detected: DetectedMetadata,
        content_type: ContentType,
        expected: Sequence[ExpectedTitle],
    ) -> ExpectedTitle | None:
        """The single expected title whose variants match the folder.

        Ambiguous (several hits) or no hit returns None.
        """
        hits: list[ExpectedTitle] = []
        for entry in expected:
            if entry.content_type != content_type:
                continue
            names = [name]
            if detected.title:
                names.append(detected.title)
                if detected.year:
                    names.append(f"{detected.title} ({detected.year})")
            if any(self._matches(n, entry.title, entry.year) for n in names):
                hits.append(entry)
        if len(hits) == 1:
            return hits[0]
        if len(hits) > 1:
            log.info(
                "organize_match_ambiguous",
                folder=name,
                candidates=[e.title for e in hits],
            )
        return None

    async def _enqueue(
        self,
        folder_path: str,
        content_type: ContentType,
        detected: DetectedMetadata,
        *,
        status: OrganizeStatus = OrganizeStatus.PENDING,
        error: str | None = None,
        selected: OrganizeOverrides | None = None,
    ) -> OrganizeQueueItem:
        now = self._clock()
        item = OrganizeQueueItem(
            item_id=uuid4().hex,
            folder_path=folder_path,
            content_type=content_type,
            detected=detected,
            status=status,
            selected=selected,
            error=error,
            created_at=now,
            updated_at=now,
        )
        await self._repo.save(item)
        log.info(
            "organize_item_queued",
            item_id=item.item_id,
            folder=folder_path,
            title=detected.title,
            status=status.value,
        )
        return item

    async def _requeue(self, item: OrganizeQueueItem) -> bool:
        """A folder reappearing after completion goes back to PENDING."""
        if item.status != OrganizeStatus.COMPLETED:
            return False
        async with self._lock_for(item.item_id):
            item = replace(
                item,
                detected=self._parse_folder(
                    PurePath(item.folder_path).name, item.content_type
                ),
                status=OrganizeStatus.PENDING,
                error=None,
                processed_at=None,
                updated_at=self._clock(),
            )
            await self._repo.save(item)
        log.info("organize_item_requeued", item_id=item.item_id, folder=item.folder_path)
        return False

    # ------------------------------------------------------------------
    # Queue surface
    # ------------------------------------------------------------------

    async def list_queue(
        self,
        *,
        status: Sequence[OrganizeStatus] | None = None,
        content_type: ContentType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[OrganizeQueueItem], int]:
        """Newest first. Without *status* only actionable items are listed."""
        wanted = set(status) if status else set(ACTIONABLE_STATUSES)
        items = [
            i
            for i in await self._repo.list_all()
            if i.status in wanted
            and (content_type is None or i.content_type == content_type)
        ]
        items.sort(key=lambda i: i.created_at, reverse=True)
        total = len(items)
        return items[offset : offset + limit], total

    async def stats(self) -> QueueStats:
        counts = {s: 0 for s in OrganizeStatus}
        for item in await self._repo.list_all():
            counts[item.status] += 1
        actionable = sum(counts[s] for s in ACTIONABLE_STATUSES)
        return QueueStats(
            total=actionable,
            pending=counts[OrganizeStatus.PENDING],
            processing=counts[OrganizeStatus.PROCESSING],
            completed=counts[OrganizeStatus.COMPLETED],
            failed=counts[OrganizeStatus.FAILED],
            skipped=counts[OrganizeStatus.SKIPPED],
        )

    async def get(self, item_id: str) -> OrganizeQueueItem:
        item = await self._repo.get(item_id)
        if item is None:
            raise NotFoundError(f"Queue item '{item_id}' not found")
        return item

    async def process(
        self, item_id: str, overrides: OrganizeOverrides | None = None
    ) -> OrganizeQueueItem:
        """Place a PENDING item using *overrides* over the detected values."""
        async with self._lock_for(item_id):
            item = await self.get(item_id)
            if item.status != OrganizeStatus.PENDING:
                raise InvalidTransitionError(
                    f"Cannot process an item in status '{item.status.value}'"
                )

            item = replace(
                item,
                status=OrganizeStatus.PROCESSING,
                selected=merge_overrides(item.selected, overrides),
                updated_at=self._clock(),
            )
            await self._repo.save(item)

            target = resolve_target(item.detected, item.selected)
            try:
                result = await self._place(item.folder_path, item.content_type, target)
            except BaseException as exc:
                # Never leave the item stuck in PROCESSING, even on cancellation.
                await self._repo.save(
                    replace(
                        item,
                        status=OrganizeStatus.PENDING,
                        error=f"Placement interrupted: {exc!r}",
                        updated_at=self._clock(),
                    )
                )
                log.error(
                    "organize_item_placement_interrupted",
                    item_id=item_id,
                    error=repr(exc),
                )
                raise
            now = self._clock()

            if result.ok:
                item = replace(
                    item,
                    status=OrganizeStatus.COMPLETED,
                    error=None,
                    processed_at=now,
                    updated_at=now,
                )
                if self._settings.delete_completed:
                    await self._repo.delete(item.item_id)
                else:
                    await self._repo.save(item)
                await self._record_library_entry(item, target, result, now)
                log.info(
                    "organize_item_completed",
                    item_id=item_id,
                    target=result.target_path,
                    files=len(result.moved_files),
                )
                return item

            status = OrganizeStatus.PENDING if result.recoverable else OrganizeStatus.FAILED
            item = replace(item, status=status, error=result.error, updated_at=now)
            await self._repo.save(item)
            log.warning(
                "organize_item_placement_failed",
                item_id=item_id,
                status=status.value,
                error=result.error,
            )
            return item

    async def skip(self, item_id: str) -> OrganizeQueueItem:
        async with self._lock_for(item_id):
            item = await self.get(item_id)
            if item.status == OrganizeStatus.SKIPPED:
                return item
            if item.status != OrganizeStatus.PENDING:
                raise InvalidTransitionError(
                    f"Cannot skip an item in status '{item.status.value}'"
                )
            item = replace(item, status=OrganizeStatus.SKIPPED, updated_at=self._clock())
            await self._repo.save(item)
            log.info("organize_item_skipped", item_id=item_id)
            return item

    async def delete(self, item_id: str) -> None:
        async with self._lock_for(item_id):
            if not await self._repo.delete(item_id):
                raise NotFoundError(f"Queue item '{item_id}' not found")
        self._locks.pop(item_id, None)
        log.info("organize_item_deleted", item_id=item_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, item_id: str) -> asyncio.Lock:
        lock = self._locks.get(item_id)
        if lock is None:
            lock = self._locks[item_id] = asyncio.Lock()
        return lock

    async def _record_library_entry(
        self,
        item: OrganizeQueueItem,
        target: PlacementTarget,
        result: PlacementResult,
        now: datetime,
    ) -> None:
        """Remember a manually placed title so later scans recognise it."""
        if self._library is None or not target.title:
            return
        entry = LibraryEntry(
            entry_id=library_entry_id(item.content_type, target),
            title=target.title,
            content_type=item.content_type,
            year=target.year,
            season=target.season,
            platform=target.platform,
            source_folder=item.folder_path,
            target_path=result.target_path,
            placed_at=now,
        )
        await self._library.save(entry)
        log.debug(
            "library_entry_recorded",
            item_id=item.item_id,
            entry_id=entry.entry_id,
        )

    async def _place(
        self, folder_path: str, content_type: ContentType, target: PlacementTarget
    ) -> PlacementResult:
        try:
            return await self._placer.place(folder_path, content_type, target)
        except (DownloadarrError, OSError) as exc:
            log.error("organize_placement_error", folder=folder_path, error=str(exc))
            return PlacementResult.retryable(f"Placement error: {exc}")
