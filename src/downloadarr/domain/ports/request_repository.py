"""Port for AcquisitionRequest persistence."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.acquisition import AcquisitionRequest, RequestStatus


@runtime_checkable
class AcquisitionRequestRepository(Protocol):
    async def save(self, request: AcquisitionRequest) -> None: ...

    async def get(self, request_id: str) -> AcquisitionRequest | None: ...

    async def delete(self, request_id: str) -> bool: ...

    async def list_all(
        self, statuses: Iterable[RequestStatus] | None = None
    ) -> list[AcquisitionRequest]: ...
