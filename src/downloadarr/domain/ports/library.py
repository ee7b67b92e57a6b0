"""Ports for library placement and completed-download hand-off."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, Union, runtime_checkable

from downloadarr.domain.entities.acquisition import AcquisitionRequest
from downloadarr.domain.entities.organize import (
    LibraryEntry,
    PlacementResult,
    PlacementTarget,
)
from downloadarr.domain.entities.preferences import ContentType

# Anything a finished folder can be matched against.
ExpectedTitle = Union[AcquisitionRequest, LibraryEntry]


@runtime_checkable
class LibraryPlacementPort(Protocol):
    """Moves a finished download folder into the library.

    The result states explicitly whether a failure is recoverable.
    """

    async def place(
        self,
        folder_path: str,
        content_type: ContentType,
        target: PlacementTarget,
    ) -> PlacementResult: ...


@runtime_checkable
class LibraryEntryRepository(Protocol):
    async def save(self, entry: LibraryEntry) -> None: ...

    async def list_all(
        self, content_type: ContentType | None = None
    ) -> list[LibraryEntry]: ...


@runtime_checkable
class CompletedDownloadSink(Protocol):
    """Receives folders of finished downloads for organization."""

    async def ingest_completed(
        self,
        folder_path: str,
        content_type: ContentType,
        expected: Sequence[ExpectedTitle],
    ) -> bool: ...
