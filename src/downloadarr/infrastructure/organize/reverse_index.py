"""Scan the download output directory for finished folders nobody claimed."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from downloadarr.domain.entities.acquisition import RequestStatus
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.domain.ports.library import (
    CompletedDownloadSink,
    ExpectedTitle,
    LibraryEntryRepository,
)
from downloadarr.domain.ports.organize_repository import OrganizeQueueRepository
from downloadarr.domain.ports.request_repository import AcquisitionRequestRepository
from downloadarr.infrastructure.organize.placement import has_media_files

log = structlog.get_logger(__name__)

DOWNLOAD_SUBDIRS: dict[ContentType, str] = {
    ContentType.MOVIE: "movies",
    ContentType.TV_SHOW: "tv-shows",
    ContentType.GAME: "games",
}

# aria2 keeps a control file next to every unfinished download.
_CONTROL_SUFFIX = ".aria2"


def _finished_entries(category_dir: Path, content_type: ContentType) -> list[Path]:
    if not category_dir.is_dir():
        return []
    entries: list[Path] = []
    for entry in sorted(category_dir.iterdir()):
        if entry.name.startswith(".") or entry.suffix == _CONTROL_SUFFIX:
            continue
        if entry.with_name(entry.name + _CONTROL_SUFFIX).exists():
            continue
        if has_media_files(entry, content_type):
            entries.append(entry)
    return entries


def _title_key(e: ExpectedTitle) -> tuple:
    return (e.content_type, e.title.lower(), e.year, e.season, e.platform)


class ReverseIndexer:
    """Feeds unknown folders under ``{download_root}/<category>`` to the
    organize queue. Completed requests and recorded library entries are
    the expected titles; an entry repeating a completed request is dropped."""

    def __init__(
        self,
        *,
        download_root: str | Path,
        sink: CompletedDownloadSink,
        queue_repository: OrganizeQueueRepository,
        request_repository: AcquisitionRequestRepository,
        library: LibraryEntryRepository | None = None,
    ) -> None:
        self._root = Path(download_root)
        self._sink = sink
        self._queue_repo = queue_repository
        self._request_repo = request_repository
        self._library = library

    async def scan(self) -> int:
        """Return the number of folders handed to the sink."""
        expected_all = await self._expected_titles()
        handed = 0
        for content_type, subdir in DOWNLOAD_SUBDIRS.items():
            entries = await asyncio.to_thread(
                _finished_entries, self._root / subdir, content_type
            )
            expected = [e for e in expected_all if e.content_type == content_type]
            for entry in entries:
                if await self._queue_repo.get_by_folder(str(entry)) is not None:
                    continue
                await self._sink.ingest_completed(str(entry), content_type, expected)
                handed += 1
        log.info("reverse_index_scan_done", root=str(self._root), handed=handed)
        return handed

    async def _expected_titles(self) -> list[ExpectedTitle]:
        expected: list[ExpectedTitle] = list(
            await self._request_repo.list_all([RequestStatus.COMPLETED])
        )
        if self._library is None:
            return expected
        seen = {_title_key(e) for e in expected}
        for entry in await self._library.list_all():
            if _title_key(entry) not in seen:
                seen.add(_title_key(entry))
                expected.append(entry)
        return expected
