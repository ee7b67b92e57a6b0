"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from downloadarr.domain.entities.rate_limit import RateLimitRule
from downloadarr.infrastructure.common.rate_limiter import FixedWindowRateLimiter
from downloadarr.infrastructure.config import AppConfig
from downloadarr.interfaces.api.errors import install_error_handlers
from downloadarr.interfaces.api.middleware import RateLimitMiddleware
from downloadarr.interfaces.app_state import AppState
from downloadarr.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration ONLY, NO resource initialization.

    Resources (record store, HTTP client, use cases, scheduler) are
    created in lifespan().
    """
    app = FastAPI(
        title="Downloadarr",
        description="Torrent acquisition and library organization pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config
    app.state.rate_limiter = FixedWindowRateLimiter()
    app.state.scheduler = None
    app.state._scheduler_task = None

    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        default_rule=RateLimitRule(
            limit=config.api.rate_limit.limit,
            window_ms=config.api.rate_limit.window_ms,
        ),
        route_rules={
            route: RateLimitRule(limit=rule.limit, window_ms=rule.window_ms)
            for route, rule in config.api.route_limits.items()
        },
    )
    install_error_handlers(app)

    from downloadarr.interfaces.api.health.router import router as health_router
    from downloadarr.interfaces.api.organize.router import router as organize_router
    from downloadarr.interfaces.api.preferences.router import (
        router as preferences_router,
    )
    from downloadarr.interfaces.api.requests.router import router as requests_router

    app.include_router(preferences_router, prefix="/api/v1")
    app.include_router(requests_router, prefix="/api/v1")
    app.include_router(organize_router, prefix="/api/v1")
    app.include_router(health_router, prefix="/api/v1")

    @app.get("/api/v1/healthz")
    async def healthz() -> dict[str, str | bool]:
        """Liveness check: 200 as long as the process is running."""
        scheduler_task = getattr(app.state, "_scheduler_task", None)
        return {
            "status": "ok",
            "scheduler_running": bool(scheduler_task and not scheduler_task.done()),
        }

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
