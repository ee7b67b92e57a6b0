"""Domain entities for torrent search and download tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .health import NetworkPath
from .preferences import ContentType, TorrentFormat, TorrentPreferences, TorrentQuality

_BYTES_PER_GB = 1024**3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestStatus(str, Enum):
    SEARCHING = "searching"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_REQUEST_STATUSES = frozenset(
    {
        RequestStatus.COMPLETED,
        RequestStatus.FAILED,
        RequestStatus.CANCELLED,
        RequestStatus.EXPIRED,
    }
)


class DownloadState(str, Enum):
    """Job states as reported by the download engine."""

    ACTIVE = "active"
    WAITING = "waiting"
    PAUSED = "paused"
    ERROR = "error"
    COMPLETE = "complete"
    REMOVED = "removed"


@dataclass(frozen=True)
class TorrentCandidate:
    """A single search result considered for a request. Never persisted
    on its own; only the selected/ranked snapshot travels with a request."""

    title: str
    size_bytes: int
    seeders: int
    leechers: int
    indexer: str
    download_uri: str
    quality: TorrentQuality | None = None
    format: TorrentFormat | None = None
    category: str | None = None
    published_at: datetime | None = None

    @property
    def size_gb(self) -> float:
        return self.size_bytes / _BYTES_PER_GB


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: TorrentCandidate
    score: float


@dataclass(frozen=True)
class SearchQuery:
    """Indexer-agnostic search input derived from a request."""

    title: str
    content_type: ContentType
    year: int | None = None
    season: int | None = None
    episode: int | None = None
    platform: str | None = None


@dataclass(frozen=True)
class DownloadJob:
    """Snapshot of a download engine job."""

    job_id: str
    state: DownloadState
    total_bytes: int = 0
    completed_bytes: int = 0
    download_speed: int = 0
    directory: str | None = None
    error_message: str | None = None
    files: list[str] = field(default_factory=list)

    @property
    def progress(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return round(self.completed_bytes / self.total_bytes * 100, 2)

    @property
    def is_active(self) -> bool:
        return self.state in (
            DownloadState.ACTIVE,
            DownloadState.WAITING,
            DownloadState.PAUSED,
        )


@dataclass(frozen=True)
class AcquisitionRequest:
    """A user request for a movie, TV episode/season or game.

    Mutated only through ``dataclasses.replace`` by the orchestrator.
    """

    request_id: str
    title: str
    content_type: ContentType
    preferences: TorrentPreferences
    year: int | None = None
    season: int | None = None
    episode: int | None = None
    platform: str | None = None
    priority: int = 5
    status: RequestStatus = RequestStatus.SEARCHING
    search_attempts: int = 0
    max_search_attempts: int = 50
    search_interval_mins: int = 30
    next_search_at: datetime | None = None
    last_searched_at: datetime | None = None
    candidates: list[ScoredCandidate] = field(default_factory=list)
    selected: TorrentCandidate | None = None
    download_job_id: str | None = None
    download_path: str | None = None
    network_path: NetworkPath | None = None
    progress: float = 0.0
    last_error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUEST_STATUSES

    def to_search_query(self) -> SearchQuery:
        return SearchQuery(
            title=self.title,
            content_type=self.content_type,
            year=self.year,
            season=self.season,
            episode=self.episode,
            platform=self.platform,
        )
