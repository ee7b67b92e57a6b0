"""Organize queue persistence backed by CachePort (diskcache/redis)."""

from __future__ import annotations

import asyncio
import hashlib
import json
from datetime import datetime

import structlog

from downloadarr.domain.entities.organize import (
    DetectedMetadata,
    OrganizeOverrides,
    OrganizeQueueItem,
    OrganizeStatus,
)
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_INDEX_KEY = "organize:_index"


def _item_key(item_id: str) -> str:
    return f"organize:{item_id}"


def _folder_key(folder_path: str) -> str:
    digest = hashlib.sha1(folder_path.encode("utf-8")).hexdigest()
    return f"organize:folder:{digest}"


def _serialize_item(item: OrganizeQueueItem) -> str:
    d = item.detected
    s = item.selected
    return json.dumps(
        {
            "item_id": item.item_id,
            "folder_path": item.folder_path,
            "content_type": item.content_type.value,
            "detected": {
                "title": d.title,
                "year": d.year,
                "season": d.season,
                "episode": d.episode,
                "platform": d.platform,
                "quality": d.quality,
                "format": d.format,
                "edition": d.edition,
            },
            "status": item.status.value,
            "selected": (
                {
                    "title": s.title,
                    "year": s.year,
                    "season": s.season,
                    "platform": s.platform,
                }
                if s is not None
                else None
            ),
            "error": item.error,
            "created_at": item.created_at.isoformat(),
            "updated_at": item.updated_at.isoformat(),
            "processed_at": item.processed_at.isoformat() if item.processed_at else None,
        }
    )


def _deserialize_item(data: str) -> OrganizeQueueItem:
    d = json.loads(data)
    selected = d.get("selected")
    return OrganizeQueueItem(
        item_id=d["item_id"],
        folder_path=d["folder_path"],
        content_type=ContentType(d["content_type"]),
        detected=DetectedMetadata(**d.get("detected", {})),
        status=OrganizeStatus(d["status"]),
        selected=OrganizeOverrides(**selected) if selected else None,
        error=d.get("error"),
        created_at=datetime.fromisoformat(d["created_at"]),
        updated_at=datetime.fromisoformat(d["updated_at"]),
        processed_at=(
            datetime.fromisoformat(d["processed_at"]) if d.get("processed_at") else None
        ),
    )


class CacheOrganizeQueueRepository:
    """Stores organize queue items via CachePort.

    Key schema:
    - ``organize:{id}`` → JSON OrganizeQueueItem
    - ``organize:folder:{sha1(folder_path)}`` → item id (unique folder)
    - ``organize:_index`` → JSON list of item ids
    """

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache
        self._index_lock = asyncio.Lock()

    async def save(self, item: OrganizeQueueItem) -> None:
        await self.cache.set(_item_key(item.item_id), _serialize_item(item), ttl=0)
        await self.cache.set(_folder_key(item.folder_path), item.item_id, ttl=0)
        async with self._index_lock:
            index = await self._load_index()
            if item.item_id not in index:
                index.append(item.item_id)
                await self._save_index(index)
        log.debug("organize_item_saved", item_id=item.item_id, status=item.status.value)

    async def get(self, item_id: str) -> OrganizeQueueItem | None:
        data = await self.cache.get(_item_key(item_id))
        if data is None:
            return None
        try:
            return _deserialize_item(data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            log.error("organize_item_deserialize_error", item_id=item_id, error=str(e))
            return None

    async def get_by_folder(self, folder_path: str) -> OrganizeQueueItem | None:
        item_id = await self.cache.get(_folder_key(folder_path))
        if item_id is None:
            return None
        return await self.get(item_id)

    async def delete(self, item_id: str) -> bool:
        item = await self.get(item_id)
        deleted = await self.cache.delete(_item_key(item_id))
        if item is not None:
            await self.cache.delete(_folder_key(item.folder_path))
        async with self._index_lock:
            index = await self._load_index()
            if item_id in index:
                index.remove(item_id)
                await self._save_index(index)
        return deleted

    async def list_all(self) -> list[OrganizeQueueItem]:
        items: list[OrganizeQueueItem] = []
        for item_id in await self._load_index():
            item = await self.get(item_id)
            if item is not None:
                items.append(item)
        return items

    # -- internal helpers --------------------------------------------------

    async def _load_index(self) -> list[str]:
        data = await self.cache.get(_INDEX_KEY)
        if data is None:
            return []
        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError):
            return []

    async def _save_index(self, index: list[str]) -> None:
        await self.cache.set(_INDEX_KEY, json.dumps(index), ttl=0)
