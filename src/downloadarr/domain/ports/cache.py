"""Cache Port - interface for the backend-agnostic key-value store."""

from __future__ import annotations

from typing import Any, Protocol


class CachePort(Protocol):
    """Port for an async key-value store with optional TTL.

    Implementations:
      - DiskcacheAdapter (SQLite-based, no daemon)
      - RedisAdapter (Redis async client)

    ``ttl=0`` stores a value without expiry; repositories use this for
    durable records. ``ttl=None`` falls back to the adapter default.

    Each adapter MUST support async context-manager semantics:
        async with cache:
            await cache.set("key", value)
    """

    async def get(self, key: str) -> Any:
        """Retrieve value. None = not found / expired."""
        ...

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """Set value with optional TTL (seconds, 0 = no expiry)."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. True = deleted, False = did not exist."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def clear(self) -> None:
        """Delete ALL keys."""
        ...

    async def aclose(self) -> None: ...

    async def __aenter__(self) -> CachePort: ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...
