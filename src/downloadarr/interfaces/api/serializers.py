"""JSON shapes for domain entities returned by the API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from downloadarr.domain.entities.acquisition import AcquisitionRequest, TorrentCandidate
from downloadarr.domain.entities.health import ContainerHealth, HealthResult
from downloadarr.domain.entities.organize import OrganizeQueueItem, QueueStats


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def candidate_to_dict(c: TorrentCandidate) -> dict[str, Any]:
    return {
        "title": c.title,
        "size_gb": round(c.size_gb, 2),
        "seeders": c.seeders,
        "leechers": c.leechers,
        "indexer": c.indexer,
        "quality": c.quality.value if c.quality else None,
        "format": c.format.value if c.format else None,
        "download_uri": c.download_uri,
    }


def request_to_dict(r: AcquisitionRequest) -> dict[str, Any]:
    return {
        "id": r.request_id,
        "title": r.title,
        "content_type": r.content_type.value,
        "year": r.year,
        "season": r.season,
        "episode": r.episode,
        "platform": r.platform,
        "priority": r.priority,
        "status": r.status.value,
        "search_attempts": r.search_attempts,
        "max_search_attempts": r.max_search_attempts,
        "next_search_at": _iso(r.next_search_at),
        "last_searched_at": _iso(r.last_searched_at),
        "candidates": [
            {"index": i, "score": s.score, **candidate_to_dict(s.candidate)}
            for i, s in enumerate(r.candidates)
        ],
        "selected": candidate_to_dict(r.selected) if r.selected else None,
        "download_job_id": r.download_job_id,
        "network_path": r.network_path.value if r.network_path else None,
        "progress": r.progress,
        "last_error": r.last_error,
        "created_at": _iso(r.created_at),
        "updated_at": _iso(r.updated_at),
        "completed_at": _iso(r.completed_at),
        "expires_at": _iso(r.expires_at),
    }


def queue_item_to_dict(item: OrganizeQueueItem) -> dict[str, Any]:
    d = item.detected
    s = item.selected
    return {
        "id": item.item_id,
        "folder_path": item.folder_path,
        "content_type": item.content_type.value,
        "status": item.status.value,
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
        "selected": (
            {"title": s.title, "year": s.year, "season": s.season, "platform": s.platform}
            if s
            else None
        ),
        "error": item.error,
        "created_at": _iso(item.created_at),
        "updated_at": _iso(item.updated_at),
        "processed_at": _iso(item.processed_at),
    }


def stats_to_dict(stats: QueueStats) -> dict[str, int]:
    return {
        "total": stats.total,
        "pending": stats.pending,
        "processing": stats.processing,
        "completed": stats.completed,
        "failed": stats.failed,
        "skipped": stats.skipped,
    }


def health_to_dict(result: HealthResult) -> dict[str, Any]:
    return {
        "status": result.status.value,
        "healthy": result.healthy,
        "message": result.message,
        "tier": result.tier,
        "checked_at": _iso(result.checked_at),
    }


def container_to_dict(c: ContainerHealth) -> dict[str, Any]:
    return {
        "name": c.name,
        "exists": c.exists,
        "running": c.running,
        "status": c.status,
        "health": c.health,
        "exit_code": c.exit_code,
        "healthy": c.healthy,
    }
