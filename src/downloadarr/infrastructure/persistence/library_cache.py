"""Library entry persistence backed by CachePort (diskcache/redis)."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime

import structlog

from downloadarr.domain.entities.organize import LibraryEntry
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_INDEX_KEY = "library:_index"


def _entry_key(entry_id: str) -> str:
    return f"library:{entry_id}"


def _serialize_entry(entry: LibraryEntry) -> str:
    return json.dumps(
        {
            "entry_id": entry.entry_id,
            "title": entry.title,
            "content_type": entry.content_type.value,
            "year": entry.year,
            "season": entry.season,
            "platform": entry.platform,
            "source_folder": entry.source_folder,
            "target_path": entry.target_path,
            "placed_at": entry.placed_at.isoformat(),
        }
    )


def _deserialize_entry(data: str) -> LibraryEntry:
    d = json.loads(data)
    return LibraryEntry(
        entry_id=d["entry_id"],
        title=d["title"],
        content_type=ContentType(d["content_type"]),
        year=d.get("year"),
        season=d.get("season"),
        platform=d.get("platform"),
        source_folder=d.get("source_folder"),
        target_path=d.get("target_path"),
        placed_at=datetime.fromisoformat(d["placed_at"]),
    )


class CacheLibraryEntryRepository:
    """Stores library entries via CachePort, separate from requests.

    Key schema:
    - ``library:{id}`` → JSON LibraryEntry (saving the same id overwrites)
    - ``library:_index`` → JSON list of entry ids
    """

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache
        self._index_lock = asyncio.Lock()

    async def save(self, entry: LibraryEntry) -> None:
        await self.cache.set(_entry_key(entry.entry_id), _serialize_entry(entry), ttl=0)
        async with self._index_lock:
            index = await self._load_index()
            if entry.entry_id not in index:
                index.append(entry.entry_id)
                await self.cache.set(_INDEX_KEY, json.dumps(index), ttl=0)
        log.debug("library_entry_saved", entry_id=entry.entry_id, title=entry.title)

    async def list_all(
        self, content_type: ContentType | None = None
    ) -> list[LibraryEntry]:
        entries: list[LibraryEntry] = []
        for entry_id in await self._load_index():
            data = await self.cache.get(_entry_key(entry_id))
            if data is None:
                continue
            try:
                entry = _deserialize_entry(data)
            except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
                log.error("library_entry_deserialize_error", entry_id=entry_id, error=str(e))
                continue
            if content_type is None or entry.content_type == content_type:
                entries.append(entry)
        return entries

    async def _load_index(self) -> list[str]:
        data = await self.cache.get(_INDEX_KEY)
        if data is None:
            return []
        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError):
            return []
