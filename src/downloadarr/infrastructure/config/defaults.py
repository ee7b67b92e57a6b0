"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "downloadarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 10.0,
        "user_agent": "Downloadarr/0.1.0",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./data/downloadarr",
        "backend": "diskcache",
    },
    "download_engine": {
        "host": "aria2",
        "port": 6800,
        "secret": "",
        "rpc_path": "/jsonrpc",
        "timeout_seconds": 10.0,
        "download_root": "/downloads",
    },
    "routing": {
        "host": "vpn",
        "network_mode": False,
        "health_port": 8080,
        "health_path": "/health",
        "health_timeout_seconds": 5.0,
        "reachability_timeout_seconds": 3.0,
        "allow_direct_fallback": False,
        "container_name": "vpn",
    },
    "indexers": [],
    "acquisition": {
        "search_interval_mins": 30,
        "first_search_delay_mins": 1,
        "max_search_attempts": 50,
        "request_ttl_days": 30,
        "check_interval_seconds": 30,
        "batch_size": 3,
        "batch_delay_seconds": 2.0,
    },
    "organize": {
        "movies_dir": "/library/movies",
        "tv_dir": "/library/tv-shows",
        "games_dir": "/library/games",
        "scan_interval_minutes": 60,
        "delete_completed": False,
    },
    "api": {
        "rate_limit": {"limit": 100, "window_ms": 60_000},
    },
}
