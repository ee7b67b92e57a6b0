"""Port for the download engine control channel."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.acquisition import DownloadJob
from downloadarr.domain.entities.health import NetworkPath


@runtime_checkable
class DownloadEnginePort(Protocol):
    """Submit/pause/resume/cancel/status over a chosen network path."""

    async def submit(self, uri: str, directory: str, *, path: NetworkPath) -> str:
        """Submit a download, returning the engine's job id."""
        ...

    async def status(self, job_id: str, *, path: NetworkPath) -> DownloadJob: ...

    async def pause(self, job_id: str, *, path: NetworkPath) -> None: ...

    async def resume(self, job_id: str, *, path: NetworkPath) -> None: ...

    async def cancel(self, job_id: str, *, path: NetworkPath) -> None: ...
