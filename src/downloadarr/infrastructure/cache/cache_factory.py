"""Store factory - builds the CachePort adapter selected by config."""

from __future__ import annotations

from typing import Literal

import structlog

from downloadarr.domain.ports.cache import CachePort
from downloadarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from downloadarr.infrastructure.cache.redis_adapter import RedisAdapter

log = structlog.get_logger(__name__)

CacheBackend = Literal["diskcache", "redis"]


def create_cache(
    backend: CacheBackend = "diskcache",
    *,
    directory: str = "./data/downloadarr",
    redis_url: str = "redis://localhost:6379/0",
    max_concurrent: int = 10,
) -> CachePort:
    """Create the record store adapter.

    Records are written without expiry, so both adapters default to
    ``ttl_seconds=0``.

    Raises:
        ValueError: If ``backend`` is unknown.
    """
    if backend == "diskcache":
        log.info("store_factory_create", backend=backend, directory=directory)
        return DiskcacheAdapter(directory=directory, max_concurrent=max_concurrent)
    if backend == "redis":
        log.info("store_factory_create", backend=backend, url=redis_url)
        return RedisAdapter(url=redis_url, max_concurrent=max(max_concurrent, 50))
    raise ValueError(
        f"Unknown cache backend: {backend!r}. Must be 'diskcache' or 'redis'."
    )
