"""AcquisitionRequest repository backed by CachePort (diskcache/redis)."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog

from downloadarr.domain.entities.acquisition import (
    AcquisitionRequest,
    RequestStatus,
    ScoredCandidate,
    TorrentCandidate,
)
from downloadarr.domain.entities.health import NetworkPath
from downloadarr.domain.entities.preferences import (
    ContentType,
    TorrentFormat,
    TorrentPreferences,
    TorrentQuality,
)
from downloadarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_INDEX_KEY = "request:_index"


def _request_key(request_id: str) -> str:
    return f"request:{request_id}"


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _serialize_candidate(c: TorrentCandidate) -> dict[str, Any]:
    return {
        "title": c.title,
        "size_bytes": c.size_bytes,
        "seeders": c.seeders,
        "leechers": c.leechers,
        "indexer": c.indexer,
        "download_uri": c.download_uri,
        "quality": c.quality.value if c.quality else None,
        "format": c.format.value if c.format else None,
        "category": c.category,
        "published_at": _dt(c.published_at),
    }


def _deserialize_candidate(d: dict[str, Any]) -> TorrentCandidate:
    return TorrentCandidate(
        title=d["title"],
        size_bytes=d["size_bytes"],
        seeders=d["seeders"],
        leechers=d.get("leechers", 0),
        indexer=d["indexer"],
        download_uri=d["download_uri"],
        quality=TorrentQuality(d["quality"]) if d.get("quality") else None,
        format=TorrentFormat(d["format"]) if d.get("format") else None,
        category=d.get("category"),
        published_at=_parse_dt(d.get("published_at")),
    )


def _serialize_request(r: AcquisitionRequest) -> str:
    return json.dumps(
        {
            "request_id": r.request_id,
            "title": r.title,
            "content_type": r.content_type.value,
            "preferences": r.preferences.to_dict(),
            "year": r.year,
            "season": r.season,
            "episode": r.episode,
            "platform": r.platform,
            "priority": r.priority,
            "status": r.status.value,
            "search_attempts": r.search_attempts,
            "max_search_attempts": r.max_search_attempts,
            "search_interval_mins": r.search_interval_mins,
            "next_search_at": _dt(r.next_search_at),
            "last_searched_at": _dt(r.last_searched_at),
            "candidates": [
                {"candidate": _serialize_candidate(s.candidate), "score": s.score}
                for s in r.candidates
            ],
            "selected": _serialize_candidate(r.selected) if r.selected else None,
            "download_job_id": r.download_job_id,
            "download_path": r.download_path,
            "network_path": r.network_path.value if r.network_path else None,
            "progress": r.progress,
            "last_error": r.last_error,
            "created_at": r.created_at.isoformat(),
            "updated_at": r.updated_at.isoformat(),
            "completed_at": _dt(r.completed_at),
            "expires_at": _dt(r.expires_at),
        }
    )


def _deserialize_request(data: str) -> AcquisitionRequest:
    d = json.loads(data)
    return AcquisitionRequest(
        request_id=d["request_id"],
        title=d["title"],
        content_type=ContentType(d["content_type"]),
        preferences=TorrentPreferences.from_dict(d.get("preferences", {})),
        year=d.get("year"),
        season=d.get("season"),
        episode=d.get("episode"),
        platform=d.get("platform"),
        priority=d.get("priority", 5),
        status=RequestStatus(d["status"]),
        search_attempts=d.get("search_attempts", 0),
        max_search_attempts=d.get("max_search_attempts", 50),
        search_interval_mins=d.get("search_interval_mins", 30),
        next_search_at=_parse_dt(d.get("next_search_at")),
        last_searched_at=_parse_dt(d.get("last_searched_at")),
        candidates=[
            ScoredCandidate(
                candidate=_deserialize_candidate(s["candidate"]), score=s["score"]
            )
            for s in d.get("candidates", [])
        ],
        selected=_deserialize_candidate(d["selected"]) if d.get("selected") else None,
        download_job_id=d.get("download_job_id"),
        download_path=d.get("download_path"),
        network_path=NetworkPath(d["network_path"]) if d.get("network_path") else None,
        progress=d.get("progress", 0.0),
        last_error=d.get("last_error"),
        created_at=datetime.fromisoformat(d["created_at"]),
        updated_at=datetime.fromisoformat(d["updated_at"]),
        completed_at=_parse_dt(d.get("completed_at")),
        expires_at=_parse_dt(d.get("expires_at")),
    )


class CacheAcquisitionRequestRepository:
    """Stores AcquisitionRequests via CachePort.

    Key schema:
    - ``request:{id}`` → JSON AcquisitionRequest (no expiry)
    - ``request:_index`` → JSON list of request ids
    """

    def __init__(self, cache: CachePort) -> None:
        self.cache = cache
        self._index_lock = asyncio.Lock()

    async def save(self, request: AcquisitionRequest) -> None:
        await self.cache.set(
            _request_key(request.request_id), _serialize_request(request), ttl=0
        )
        async with self._index_lock:
            index = await self._load_index()
            if request.request_id not in index:
                index.append(request.request_id)
                await self._save_index(index)
        log.debug(
            "request_saved", request_id=request.request_id, status=request.status.value
        )

    async def get(self, request_id: str) -> AcquisitionRequest | None:
        data = await self.cache.get(_request_key(request_id))
        if data is None:
            return None
        try:
            return _deserialize_request(data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            log.error("request_deserialize_error", request_id=request_id, error=str(e))
            return None

    async def delete(self, request_id: str) -> bool:
        deleted = await self.cache.delete(_request_key(request_id))
        async with self._index_lock:
            index = await self._load_index()
            if request_id in index:
                index.remove(request_id)
                await self._save_index(index)
        return deleted

    async def list_all(
        self, statuses: Iterable[RequestStatus] | None = None
    ) -> list[AcquisitionRequest]:
        wanted = set(statuses) if statuses is not None else None
        results: list[AcquisitionRequest] = []
        for request_id in await self._load_index():
            request = await self.get(request_id)
            if request is None:
                continue
            if wanted is not None and request.status not in wanted:
                continue
            results.append(request)
        return results

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
