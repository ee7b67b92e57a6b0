"""Tests for create_app wiring and CLI argument handling."""

from __future__ import annotations

import yaml
from fastapi.testclient import TestClient

from downloadarr.infrastructure.config.schema import (
    ApiConfig,
    AppConfig,
    RateLimitRuleConfig,
)
from downloadarr.interfaces.app import create_app
from downloadarr.interfaces.cli.cli import (
    _parse_args,
    build_cli_overrides,
    render_config,
)


class TestCreateApp:
    def test_healthz_without_lifespan(self) -> None:
        # No context manager: lifespan (store, scheduler) is not started.
        client = TestClient(create_app(AppConfig()))

        resp = client.get("/api/v1/healthz")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "scheduler_running": False}

    def test_routes_are_mounted_under_api_v1(self) -> None:
        app = create_app(AppConfig())
        paths = {getattr(r, "path", "") for r in app.routes}

        assert "/api/v1/requests" in paths
        assert "/api/v1/preferences" in paths
        assert "/api/v1/organize/queue" in paths
        assert "/api/v1/health/network" in paths

    def test_inbound_rate_limit_from_config(self) -> None:
        config = AppConfig(
            api=ApiConfig(
                rate_limit=RateLimitRuleConfig(limit=2, window_ms=60_000),
                route_limits={},
            )
        )
        client = TestClient(create_app(config))

        assert client.get("/api/v1/healthz").status_code == 200
        assert client.get("/api/v1/healthz").status_code == 200
        resp = client.get("/api/v1/healthz")

        assert resp.status_code == 429
        assert resp.headers["X-RateLimit-Limit"] == "2"


class TestCliOverrides:
    def test_no_flags_no_overrides(self) -> None:
        assert build_cli_overrides(_parse_args([])) == {}

    def test_logging_flags(self) -> None:
        args = _parse_args(["--log-level", "DEBUG", "--log-format", "json"])
        assert build_cli_overrides(args) == {"log_level": "DEBUG", "log_format": "json"}

    def test_server_flags_are_not_config(self) -> None:
        args = _parse_args(["--host", "127.0.0.1", "--port", "9000"])
        assert args.port == 9000
        assert build_cli_overrides(args) == {}


class TestRenderConfig:
    def test_secrets_are_masked(self) -> None:
        config = AppConfig(
            download_engine={"secret": "hunter2"},
            indexers=[{"name": "jackett", "url": "http://j:9117", "api_key": "k"}],
        )

        data = yaml.safe_load(render_config(config))

        assert data["download_engine"]["secret"] == "***"
        assert data["indexers"][0]["api_key"] == "***"
        assert data["indexers"][0]["name"] == "jackett"

    def test_sections_present(self) -> None:
        data = yaml.safe_load(render_config(AppConfig()))
        assert {"http", "logging", "cache", "routing", "organize", "api"} <= set(data)
