"""FastAPI middleware for API rate limiting."""

from __future__ import annotations

from collections.abc import Mapping

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from downloadarr.domain.entities.rate_limit import RateLimitRule
from downloadarr.infrastructure.common.rate_limiter import (
    FixedWindowRateLimiter,
    client_key,
)

log = structlog.get_logger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window limit per caller (IP + User-Agent) and route.

    Rules are resolved per call from ``route_rules`` keyed by
    ``"METHOD /path"``; unmatched routes use ``default_rule``.

    Args:
        app: ASGI application.
        limiter: Shared limiter; a private one is created when omitted.
        default_rule: Limit applied to routes without an explicit rule.
        route_rules: Per-route overrides.
    """

    def __init__(
        self,
        app: object,
        *,
        limiter: FixedWindowRateLimiter | None = None,
        default_rule: RateLimitRule = RateLimitRule(limit=100, window_ms=60_000),
        route_rules: Mapping[str, RateLimitRule] | None = None,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._limiter = limiter or FixedWindowRateLimiter()
        self._default = default_rule
        self._routes = {k.strip(): v for k, v in (route_rules or {}).items()}

    def rule_for(self, method: str, path: str) -> RateLimitRule:
        return self._routes.get(f"{method.upper()} {path}", self._default)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        method = request.method
        path = request.url.path
        rule = self.rule_for(method, path)
        client_ip = request.client.host if request.client else "unknown"
        key = client_key(
            client_ip, request.headers.get("user-agent", ""), method, path
        )

        decision = await self._limiter.check(key, rule)
        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(int(decision.reset_at // 1000)),
        }

        if not decision.allowed:
            log.warning(
                "rate_limit_exceeded",
                client_ip=client_ip,
                method=method,
                path=path,
                limit=rule.limit,
                retry_after=decision.retry_after,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limit exceeded",
                    "retry_after": decision.retry_after,
                },
                headers={**headers, "Retry-After": str(decision.retry_after)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
