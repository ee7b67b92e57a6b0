"""Port for torrent indexers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.acquisition import SearchQuery, TorrentCandidate


@runtime_checkable
class IndexerPort(Protocol):
    """A torrent search provider.

    Implementations raise the domain error taxonomy
    (``TransientNetworkError``, ``AuthenticationError``, ...) and never
    leak transport exceptions.
    """

    @property
    def name(self) -> str: ...

    async def search(self, query: SearchQuery) -> list[TorrentCandidate]: ...
