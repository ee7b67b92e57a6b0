from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn
import yaml

from downloadarr.infrastructure.config import AppConfig, load_config
from downloadarr.infrastructure.logging.setup import configure_logging
from downloadarr.interfaces.app import create_app

log = structlog.get_logger(__name__)

DEFAULT_PORT = "8686"


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="downloadarr",
        description="Torrent acquisition and library organization service.",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--host", default=None, help="Bind host (overrides HOST env).")
    server.add_argument(
        "--port", default=None, type=int, help="Bind port (overrides PORT env)."
    )

    sources = parser.add_argument_group("configuration sources")
    sources.add_argument("--config", default=None, help="Path to YAML config file.")
    sources.add_argument("--dotenv", default=None, help="Path to .env file.")
    sources.add_argument(
        "--print-config",
        action="store_true",
        help="Print the effective configuration as YAML and exit.",
    )

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    logging_group.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
    )

    return parser.parse_args(argv)


def build_cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Highest-precedence config layer: only flags the user actually passed."""
    overrides: dict[str, Any] = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    return overrides


def render_config(config: AppConfig) -> str:
    """Effective configuration in the sectioned YAML shape, secrets masked."""
    data = config.to_sectioned_dict()
    if data["download_engine"].get("secret"):
        data["download_engine"]["secret"] = "***"
    for indexer in data["indexers"]:
        if indexer.get("api_key"):
            indexer["api_key"] = "***"
    return yaml.safe_dump(data, sort_keys=False)


def start(argv: Iterable[str] | None = None) -> None:
    """Process entrypoint. Config is loaded exactly once and handed to the app."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    config = load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=build_cli_overrides(args),
    )
    if args.print_config:
        sys.stdout.write(render_config(config))
        return

    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = int(args.port or os.getenv("PORT", DEFAULT_PORT))

    log_config = configure_logging(config)
    log.info(
        "downloadarr_starting",
        host=host,
        port=port,
        environment=config.environment,
        indexers=len(config.indexers),
        routing_configured=config.routing_configured,
    )

    uvicorn.run(create_app(config), host=host, port=port, log_config=log_config)


if __name__ == "__main__":
    raise SystemExit(start())
