"""Health check results. Always values, never raised."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NetworkPath(str, Enum):
    DIRECT = "direct"
    ROUTED = "routed"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class HealthResult:
    """Outcome of a network-path health check.

    ``tier`` names the check that produced the verdict
    (``health_endpoint``, ``network_mode``, ``fallback``, ``direct``).
    """

    status: HealthStatus
    message: str
    tier: str | None = None
    checked_at: datetime = field(default_factory=_utcnow)

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY


@dataclass(frozen=True)
class ContainerHealth:
    """Container runtime view of a single container.

    ``exists=False`` with ``status=None`` means the status is unknown
    (runtime unavailable, timeout or unparsable output).
    """

    name: str
    exists: bool
    running: bool = False
    status: str | None = None
    health: str | None = None
    exit_code: int | None = None

    @property
    def healthy(self) -> bool:
        if not self.running:
            return False
        return self.health in (None, "healthy")
