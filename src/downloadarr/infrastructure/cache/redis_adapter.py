"""Redis adapter - async record store via redis.asyncio."""

from __future__ import annotations

import asyncio
import pickle
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from downloadarr.domain.entities.errors import TransientNetworkError

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis store with a semaphore bounding parallel operations.

    Values are pickled (same as the diskcache adapter). Keys are namespaced
    with ``key_prefix`` so several deployments can share a database.
    Write failures raise ``TransientNetworkError``; records must not be
    dropped silently.

    Args:
        url: Redis URL (e.g. ``redis://localhost:6379/0``).
        ttl_seconds: Default TTL (0 = no expiry).
        max_concurrent: Max parallel Redis ops.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 0,
        max_concurrent: int = 50,
        key_prefix: str = "downloadarr:",
    ) -> None:
        self.url = url
        self.default_ttl = ttl_seconds
        self.key_prefix = key_prefix
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def _k(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def __aenter__(self) -> RedisAdapter:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=False)
            try:
                await self._client.ping()
                log.info("redis_connected", url=self.url)
            except RedisError as e:
                log.error("redis_connection_failed", url=self.url, error=str(e))
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    def _require_open(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with store:'")
        return self._client

    # --- CachePort implementation ---
    async def get(self, key: str) -> Any | None:
        client = self._require_open()
        async with self._semaphore:
            try:
                raw = await client.get(self._k(key))
            except RedisError as e:
                log.error("redis_get_error", key=key, error=str(e))
                raise TransientNetworkError(str(e), service="redis") from e
        if raw is None:
            return None
        try:
            return pickle.loads(raw)
        except pickle.PickleError as e:
            log.error("redis_unpickle_error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        client = self._require_open()
        expire = self.default_ttl if ttl is None else ttl
        packed = pickle.dumps(value)
        async with self._semaphore:
            try:
                if expire > 0:
                    await client.setex(self._k(key), expire, packed)
                else:
                    await client.set(self._k(key), packed)
            except RedisError as e:
                log.error("redis_set_error", key=key, error=str(e))
                raise TransientNetworkError(str(e), service="redis") from e
        log.debug("store_set", key=key, ttl=expire, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        client = self._require_open()
        async with self._semaphore:
            try:
                deleted = await client.delete(self._k(key))
            except RedisError as e:
                log.error("redis_delete_error", key=key, error=str(e))
                raise TransientNetworkError(str(e), service="redis") from e
        return deleted > 0

    async def exists(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.exists(self._k(key)) > 0
            except RedisError as e:
                log.error("redis_exists_error", key=key, error=str(e))
                return False

    async def clear(self) -> None:
        """Delete every key under this adapter's prefix."""
        if self._client is None:
            return
        async with self._semaphore:
            try:
                async for key in self._client.scan_iter(match=f"{self.key_prefix}*"):
                    await self._client.delete(key)
                log.warning("redis_prefix_cleared", prefix=self.key_prefix)
            except RedisError as e:
                log.error("redis_clear_error", error=str(e))
