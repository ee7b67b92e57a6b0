"""Network path health monitor for the download engine.

Three check tiers, evaluated in order until one produces a verdict:

1. The routing component's dedicated health endpoint. Its self-reported
   ``connected`` flag is trusted verbatim.
2. Network-mode check: the engine's control port on ``localhost``
   (only when the engine shares the routing component's namespace).
3. Fallback check: the engine's control port via the routing host.

Tiers 2 and 3 test reachability only: any HTTP response, including a
4xx/5xx, means the path is up.
"""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import structlog

from downloadarr.domain.entities.health import (
    ContainerHealth,
    HealthResult,
    HealthStatus,
    NetworkPath,
)
from downloadarr.domain.ports.container_runtime import ContainerRuntimePort
from downloadarr.infrastructure.common.rate_limiter import FixedWindowRateLimiter
from downloadarr.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

HEALTH_CHECK_KEY = "health:checks"
USER_AGENT = "Downloadarr-Health-Check"


class HealthMonitor:
    """Answers "is the download engine reachable, and through which path?".

    Never raises from ``check_health``/``select_path``: every outcome is a
    ``HealthResult`` or ``None``. The last verdict is kept so throttled
    callers still get an answer.
    """

    def __init__(
        self,
        config: AppConfig,
        http_client: httpx.AsyncClient,
        limiter: FixedWindowRateLimiter,
        inspector: ContainerRuntimePort | None = None,
    ) -> None:
        self._config = config
        self._routing = config.routing
        self._engine = config.download_engine
        self._http = http_client
        self._limiter = limiter
        self._inspector = inspector
        self._last_result: HealthResult | None = None

    @property
    def routing_configured(self) -> bool:
        return self._config.routing_configured

    @property
    def last_result(self) -> HealthResult | None:
        return self._last_result

    async def check_health(self) -> HealthResult:
        if not self.routing_configured:
            return HealthResult(
                status=HealthStatus.NOT_APPLICABLE,
                message="Routing not configured (engine host is not the "
                "routing host and network mode is off)",
            )

        decision = await self._limiter.allow(
            HEALTH_CHECK_KEY, self._routing.health_check_limit, self._routing.health_check_window_ms
        )
        if not decision.allowed:
            if self._last_result is not None:
                return self._last_result
            return HealthResult(
                status=HealthStatus.UNHEALTHY,
                message="Health checks throttled",
                tier="throttled",
            )

        result = await self._run_tiers()
        self._last_result = result
        log.info(
            "routing_health_checked",
            status=result.status.value,
            tier=result.tier,
            message=result.message,
        )
        return result

    async def select_path(self) -> NetworkPath | None:
        """Pick the network path a new download should use, or None."""
        if not self.routing_configured:
            url = f"http://{self._engine.host}:{self._engine.port}"
            if await self._responds(url, self._routing.reachability_timeout_seconds):
                return NetworkPath.DIRECT
            log.warning("direct_path_unreachable", url=url)
            return None

        result = await self.check_health()
        if result.healthy:
            return NetworkPath.ROUTED
        if self._routing.allow_direct_fallback:
            log.warning("routing_unhealthy_using_direct", message=result.message)
            return NetworkPath.DIRECT
        return None

    async def container_status(self) -> ContainerHealth:
        """Container runtime view of the routing component."""
        name = self._routing.container_name
        if self._inspector is None:
            return ContainerHealth(name=name, exists=False)
        return await self._inspector.inspect(name)

    # -- tiers -------------------------------------------------------------

    async def _run_tiers(self) -> HealthResult:
        endpoint = await self._check_health_endpoint()
        if endpoint is not None:
            return endpoint

        port = self._engine.port
        timeout = self._routing.reachability_timeout_seconds

        if self._routing.network_mode:
            if await self._responds(f"http://localhost:{port}", timeout):
                return HealthResult(
                    status=HealthStatus.HEALTHY,
                    message="Network mode active, engine reachable locally",
                    tier="network_mode",
                )

        if await self._responds(f"http://{self._routing.host}:{port}", timeout):
            return HealthResult(
                status=HealthStatus.HEALTHY,
                message="Routing component is reachable (fallback check)",
                tier="fallback",
            )

        return HealthResult(
            status=HealthStatus.UNHEALTHY,
            message="Routing component is not reachable",
            tier="fallback",
        )

    async def _check_health_endpoint(self) -> HealthResult | None:
        """Tier 1. Returns None when the endpoint gives no usable answer."""
        url = (
            f"http://{self._routing.host}:{self._routing.health_port}"
            f"{self._routing.health_path}"
        )
        try:
            resp = await self._http.get(
                url,
                timeout=self._routing.health_timeout_seconds,
                headers={"User-Agent": USER_AGENT},
            )
            data = resp.json()
        except httpx.TimeoutException:
            log.debug("health_endpoint_timeout", url=url)
            return None
        except httpx.HTTPError as exc:
            log.debug("health_endpoint_error", url=url, error=str(exc))
            return None
        except ValueError:
            log.debug("health_endpoint_invalid_body", url=url)
            return None

        if not isinstance(data, dict) or "connected" not in data:
            return None

        connected = data.get("connected") is True
        return HealthResult(
            status=HealthStatus.HEALTHY if connected else HealthStatus.UNHEALTHY,
            message=str(data.get("message") or "Routing status retrieved"),
            tier="health_endpoint",
            checked_at=datetime.now(timezone.utc),
        )

    async def _responds(self, url: str, timeout: float) -> bool:
        """Any HTTP response counts, only transport failures do not."""
        try:
            await self._http.get(
                url, timeout=timeout, headers={"User-Agent": USER_AGENT}
            )
        except httpx.TimeoutException:
            log.debug("reachability_check_timeout", url=url)
            return False
        except httpx.HTTPError as exc:
            log.debug("reachability_check_error", url=url, error=str(exc))
            return False
        return True
