"""Preferences store backed by CachePort (diskcache/redis)."""

from __future__ import annotations

import json

import structlog

from downloadarr.domain.entities.preferences import TorrentPreferences
from downloadarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_KEY = "preferences:torrent"


class CachePreferencesStore:
    """Single-record upsert/read. Stored without expiry."""

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache

    async def get(self) -> TorrentPreferences | None:
        data = await self.cache.get(_KEY)
        if data is None:
            return None
        try:
            return TorrentPreferences.from_dict(json.loads(data))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            log.error("preferences_deserialize_error", error=str(e))
            return None

    async def save(self, preferences: TorrentPreferences) -> None:
        await self.cache.set(_KEY, json.dumps(preferences.to_dict()), ttl=0)
        log.debug("preferences_saved")
