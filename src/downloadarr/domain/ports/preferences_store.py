"""Port for preferences persistence."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.preferences import TorrentPreferences


@runtime_checkable
class PreferencesStore(Protocol):
    """Upsert/read of the installation-wide preferences record."""

    async def get(self) -> TorrentPreferences | None: ...

    async def save(self, preferences: TorrentPreferences) -> None: ...
