"""Port for OrganizeQueueItem persistence."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.organize import OrganizeQueueItem


@runtime_checkable
class OrganizeQueueRepository(Protocol):
    """Records are unique per ``folder_path``."""

    async def save(self, item: OrganizeQueueItem) -> None: ...

    async def get(self, item_id: str) -> OrganizeQueueItem | None: ...

    async def get_by_folder(self, folder_path: str) -> OrganizeQueueItem | None: ...

    async def delete(self, item_id: str) -> bool: ...

    async def list_all(self) -> list[OrganizeQueueItem]: ...
