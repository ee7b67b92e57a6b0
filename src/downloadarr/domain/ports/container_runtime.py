"""Port for container status introspection."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.health import ContainerHealth


@runtime_checkable
class ContainerRuntimePort(Protocol):
    async def inspect(self, name: str) -> ContainerHealth: ...

    async def is_available(self) -> bool: ...
