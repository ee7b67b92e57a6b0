"""Diskcache adapter - SQLite-backed record store without a daemon process."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)


def _expire(ttl: int | None, default_ttl: int) -> int | None:
    """Map CachePort TTL semantics onto diskcache's ``expire`` argument."""
    value = default_ttl if ttl is None else ttl
    return None if value <= 0 else value


class DiskcacheAdapter:
    """Async wrapper for diskcache.Cache (sync-only library).

    - Disk I/O runs in ``asyncio.to_thread`` so the event loop never blocks.
    - A semaphore bounds parallel SQLite operations (lock contention).
    - ``ttl=0`` stores without expiry (durable records).

    Args:
        directory: SQLite DB directory.
        ttl_seconds: Default TTL for ``set()`` without explicit value (0 = none).
        max_concurrent: Max parallel disk ops.
    """

    def __init__(
        self,
        directory: str | Path = "./data/downloadarr",
        ttl_seconds: int = 0,
        max_concurrent: int = 10,
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = ttl_seconds
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(DiskCache, str(self.directory))
            log.info("diskcache_opened", path=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", directory=str(self.directory))

    def _require_open(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "Store not initialized. Use 'async with store:' or await store.__aenter__()"
            )
        return self._cache

    # --- CachePort implementation ---
    async def get(self, key: str) -> Optional[Any]:
        cache = self._require_open()
        async with self._semaphore:
            value = await asyncio.to_thread(cache.get, key, default=None)
        log.debug("store_get", key=key, hit=value is not None)
        return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        cache = self._require_open()
        expire = _expire(ttl, self.default_ttl)
        async with self._semaphore:
            await asyncio.to_thread(cache.set, key, value, expire=expire)
        log.debug("store_set", key=key, expire=expire)

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        async with self._semaphore:
            deleted = await asyncio.to_thread(self._cache.delete, key)
        log.debug("store_delete", key=key, deleted=deleted)
        return bool(deleted)

    async def exists(self, key: str) -> bool:
        if self._cache is None:
            return False
        cache = self._cache
        async with self._semaphore:
            # Cache.__contains__ honours expiry
            return await asyncio.to_thread(cache.__contains__, key)

    async def clear(self) -> None:
        if self._cache is None:
            return
        async with self._semaphore:
            await asyncio.to_thread(self._cache.clear)
        log.warning("store_cleared", directory=str(self.directory))
