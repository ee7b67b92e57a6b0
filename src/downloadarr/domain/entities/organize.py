"""Domain entities for the manual organization queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .preferences import ContentType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrganizeStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


ACTIONABLE_STATUSES: tuple[OrganizeStatus, ...] = (
    OrganizeStatus.PENDING,
    OrganizeStatus.PROCESSING,
    OrganizeStatus.FAILED,
)


@dataclass(frozen=True)
class DetectedMetadata:
    """Best-effort parse of a download folder name."""

    title: str | None = None
    year: int | None = None
    season: int | None = None
    episode: int | None = None
    platform: str | None = None
    quality: str | None = None
    format: str | None = None
    edition: str | None = None


@dataclass(frozen=True)
class OrganizeOverrides:
    """Operator-supplied corrections. Non-None values win over detected ones."""

    title: str | None = None
    year: int | None = None
    season: int | None = None
    platform: str | None = None


@dataclass(frozen=True)
class OrganizeQueueItem:
    item_id: str
    folder_path: str
    content_type: ContentType
    detected: DetectedMetadata = field(default_factory=DetectedMetadata)
    status: OrganizeStatus = OrganizeStatus.PENDING
    selected: OrganizeOverrides | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    processed_at: datetime | None = None


@dataclass(frozen=True)
class PlacementTarget:
    """Resolved values a placement is performed with."""

    title: str | None
    year: int | None = None
    season: int | None = None
    platform: str | None = None


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of moving a folder into the library.

    ``recoverable`` is only meaningful when ``ok`` is False: a recoverable
    failure can be retried with different input, a non-recoverable one
    cannot (e.g. the destination root does not exist).
    """

    ok: bool
    recoverable: bool = False
    target_path: str | None = None
    moved_files: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def success(cls, target_path: str, moved_files: list[str]) -> PlacementResult:
        return cls(ok=True, target_path=target_path, moved_files=moved_files)

    @classmethod
    def retryable(cls, error: str) -> PlacementResult:
        return cls(ok=False, recoverable=True, error=error)

    @classmethod
    def fatal(cls, error: str) -> PlacementResult:
        return cls(ok=False, recoverable=False, error=error)


@dataclass(frozen=True)
class QueueStats:
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    skipped: int


@dataclass(frozen=True)
class LibraryEntry:
    """A title placed in the library through the organize queue.

    Kept apart from acquisition requests; later scans use these as
    expected titles alongside completed requests.
    """

    entry_id: str
    title: str
    content_type: ContentType
    year: int | None = None
    season: int | None = None
    platform: str | None = None
    source_folder: str | None = None
    target_path: str | None = None
    placed_at: datetime = field(default_factory=_utcnow)
