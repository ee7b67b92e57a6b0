"""Shared test fixtures for the Downloadarr test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from downloadarr.domain.entities.acquisition import AcquisitionRequest, TorrentCandidate
from downloadarr.domain.entities.preferences import (
    ContentType,
    TorrentFormat,
    TorrentPreferences,
    TorrentQuality,
)

GB = 1024**3

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def preferences() -> TorrentPreferences:
    """Permissive preferences: no trusted-indexer or blacklist filtering."""
    return TorrentPreferences(
        preferred_qualities=[TorrentQuality.HD_1080P, TorrentQuality.HD_720P],
        preferred_formats=[TorrentFormat.X265, TorrentFormat.X264],
        min_seeders=5,
        max_size_gb=20.0,
        trusted_indexers=[],
        blacklisted_words=["cam"],
    )


@pytest.fixture()
def make_candidate() -> Callable[..., TorrentCandidate]:
    """Factory for TorrentCandidate with sensible defaults."""

    def _make(**overrides: Any) -> TorrentCandidate:
        data: dict[str, Any] = {
            "title": "Dune.2021.1080p.WEB-DL.x265-GRP",
            "size_bytes": 4 * GB,
            "seeders": 50,
            "leechers": 3,
            "indexer": "1337x",
            "download_uri": "magnet:?xt=urn:btih:aaaa",
            "quality": TorrentQuality.HD_1080P,
            "format": TorrentFormat.X265,
        }
        data.update(overrides)
        return TorrentCandidate(**data)

    return _make


@pytest.fixture()
def now() -> datetime:
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def acquisition_request(
    preferences: TorrentPreferences, now: datetime
) -> AcquisitionRequest:
    return AcquisitionRequest(
        request_id="req-1",
        title="Dune",
        year=2021,
        content_type=ContentType.MOVIE,
        preferences=preferences,
        next_search_at=now,
        created_at=now,
        updated_at=now,
    )


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


class InMemoryCache:
    """Dict-backed CachePort for repository tests (TTL ignored)."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def clear(self) -> None:
        self.data.clear()

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> InMemoryCache:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


@pytest.fixture()
def memory_cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    cache.exists = AsyncMock(return_value=False)
    cache.clear = AsyncMock()
    cache.aclose = AsyncMock()
    return cache
