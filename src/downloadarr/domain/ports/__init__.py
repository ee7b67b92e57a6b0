from .cache import CachePort
from .container_runtime import ContainerRuntimePort
from .download_engine import DownloadEnginePort
from .indexer import IndexerPort
from .library import (
    CompletedDownloadSink,
    ExpectedTitle,
    LibraryEntryRepository,
    LibraryPlacementPort,
)
from .network_health import NetworkHealthPort
from .organize_repository import OrganizeQueueRepository
from .preferences_store import PreferencesStore
from .request_repository import AcquisitionRequestRepository

__all__ = [
    "AcquisitionRequestRepository",
    "CachePort",
    "CompletedDownloadSink",
    "ContainerRuntimePort",
    "DownloadEnginePort",
    "ExpectedTitle",
    "IndexerPort",
    "LibraryEntryRepository",
    "LibraryPlacementPort",
    "NetworkHealthPort",
    "OrganizeQueueRepository",
    "PreferencesStore",
]
