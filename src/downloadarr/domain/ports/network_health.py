"""Port for network path health."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from downloadarr.domain.entities.health import HealthResult, NetworkPath


@runtime_checkable
class NetworkHealthPort(Protocol):
    """Never raises: every outcome is encoded in the returned value."""

    async def check_health(self) -> HealthResult: ...

    async def select_path(self) -> NetworkPath | None: ...
