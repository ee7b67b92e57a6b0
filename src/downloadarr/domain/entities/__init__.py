from .acquisition import (
    AcquisitionRequest,
    DownloadJob,
    DownloadState,
    RequestStatus,
    ScoredCandidate,
    SearchQuery,
    TorrentCandidate,
)
from .errors import (
    AuthenticationError,
    DownloadarrError,
    DuplicateRequestError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    RateLimitExceeded,
    TransientNetworkError,
    UnknownExternalError,
    ValidationError,
    ValidationErrorKind,
)
from .health import ContainerHealth, HealthResult, HealthStatus, NetworkPath
from .organize import (
    DetectedMetadata,
    LibraryEntry,
    OrganizeOverrides,
    OrganizeQueueItem,
    OrganizeStatus,
    PlacementResult,
    PlacementTarget,
    QueueStats,
)
from .preferences import (
    ContentType,
    TorrentCategory,
    TorrentFormat,
    TorrentPreferences,
    TorrentQuality,
)
from .rate_limit import RateLimitDecision, RateLimitRule

__all__ = [
    "AcquisitionRequest",
    "AuthenticationError",
    "ContainerHealth",
    "ContentType",
    "DetectedMetadata",
    "DownloadJob",
    "DownloadState",
    "DownloadarrError",
    "DuplicateRequestError",
    "ExternalServiceError",
    "HealthResult",
    "HealthStatus",
    "InvalidTransitionError",
    "LibraryEntry",
    "NetworkPath",
    "NotFoundError",
    "OrganizeOverrides",
    "OrganizeQueueItem",
    "OrganizeStatus",
    "PlacementResult",
    "PlacementTarget",
    "QueueStats",
    "RateLimitDecision",
    "RateLimitExceeded",
    "RateLimitRule",
    "RequestStatus",
    "ScoredCandidate",
    "SearchQuery",
    "TorrentCandidate",
    "TorrentCategory",
    "TorrentFormat",
    "TorrentPreferences",
    "TorrentQuality",
    "TransientNetworkError",
    "UnknownExternalError",
    "ValidationError",
    "ValidationErrorKind",
]
