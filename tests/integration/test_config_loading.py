"""Integration tests for configuration loading with layered precedence.

Tests the real load_config() function with actual YAML files, environment
variables, and CLI overrides to verify precedence: defaults < YAML < ENV < CLI.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from downloadarr.infrastructure.config.load import load_config

pytestmark = pytest.mark.integration


@pytest.fixture()
def yaml_config(tmp_path: Path) -> Path:
    """Write a minimal YAML config and return its path."""
    config = {
        "app_name": "downloadarr-test",
        "environment": "test",
        "http": {"timeout_seconds": 15.0, "user_agent": "TestAgent/1.0"},
        "logging": {"level": "DEBUG", "format": "console"},
        "cache": {"dir": str(tmp_path / "store")},
        "download_engine": {"host": "vpn", "secret": "s3cret"},
        "indexers": [
            {"name": "jackett", "url": "http://jackett:9117", "api_key": "k"},
        ],
        "organize": {"movies_dir": str(tmp_path / "movies")},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return path


class TestDefaultsOnly:
    """Load with no YAML, no ENV, no CLI: pure defaults."""

    def test_defaults_produce_valid_config(self) -> None:
        config = load_config()
        assert config.app_name == "downloadarr"
        assert config.environment == "dev"
        assert config.http_timeout_seconds == 10.0
        assert config.log_level == "INFO"
        assert config.log_format == "console"
        assert config.download_engine.port == 6800
        assert config.acquisition.search_interval_mins == 30
        assert config.acquisition.max_search_attempts == 50
        assert config.indexers == []

    def test_defaults_derive_log_format_from_environment(self) -> None:
        config = load_config(cli_overrides={"environment": "prod"})
        assert config.log_format == "json"

    def test_routing_not_configured_by_default(self) -> None:
        config = load_config()
        assert config.routing_configured is False

    def test_default_route_limits_present(self) -> None:
        config = load_config()
        assert config.api.rate_limit.limit == 100
        assert "POST /api/v1/requests" in config.api.route_limits


class TestYamlOverrides:
    """YAML values override defaults."""

    def test_yaml_overrides_defaults(self, yaml_config: Path, tmp_path: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.app_name == "downloadarr-test"
        assert config.environment == "test"
        assert config.http_timeout_seconds == 15.0
        assert config.http_user_agent == "TestAgent/1.0"
        assert config.log_level == "DEBUG"
        assert config.cache.directory == tmp_path / "store"
        assert config.download_engine.secret == "s3cret"
        assert config.organize.movies_dir == tmp_path / "movies"

    def test_yaml_indexers_parsed(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert len(config.indexers) == 1
        assert config.indexers[0].name == "jackett"
        assert config.indexers[0].enabled is True

    def test_engine_on_routing_host_means_routing_configured(
        self, yaml_config: Path
    ) -> None:
        config = load_config(config_path=yaml_config)
        assert config.routing_configured is True

    def test_yaml_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nonexistent.yaml")

    def test_yaml_partial_override_preserves_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "partial.yaml"
        path.write_text(
            yaml.dump({"download_engine": {"port": 6900}}), encoding="utf-8"
        )

        config = load_config(config_path=path)
        assert config.download_engine.port == 6900
        assert config.download_engine.host == "aria2"
        assert config.app_name == "downloadarr"

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path=path)

    def test_invalid_value_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(
            yaml.dump({"http": {"timeout_seconds": 0}}), encoding="utf-8"
        )
        with pytest.raises(ValidationError):
            load_config(config_path=path)


class TestEnvOverrides:
    """Environment variables override YAML and defaults."""

    def test_env_overrides_yaml(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DOWNLOADARR_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("DOWNLOADARR_ENGINE_SECRET", "from-env")

        config = load_config(config_path=yaml_config)
        assert config.log_level == "WARNING"
        assert config.download_engine.secret == "from-env"
        assert config.app_name == "downloadarr-test"

    def test_env_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOWNLOADARR_ENVIRONMENT", "prod")

        config = load_config()
        assert config.environment == "prod"
        assert config.log_format == "json"

    def test_env_network_mode(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOWNLOADARR_ROUTING_NETWORK_MODE", "true")

        config = load_config()
        assert config.routing.network_mode is True
        assert config.routing_configured is True

    def test_dotenv_file_participates_as_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Registered so teardown removes whatever the .env file loads.
        monkeypatch.setenv("DOWNLOADARR_ENGINE_PORT", "1")
        monkeypatch.delenv("DOWNLOADARR_ENGINE_PORT")
        dotenv = tmp_path / ".env"
        dotenv.write_text("DOWNLOADARR_ENGINE_PORT=7000\n", encoding="utf-8")

        config = load_config(dotenv_path=dotenv)
        assert config.download_engine.port == 7000

    def test_missing_dotenv_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / "missing.env")


class TestCliOverrides:
    """CLI overrides beat everything (highest precedence)."""

    def test_cli_overrides_yaml_and_env(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DOWNLOADARR_LOG_LEVEL", "WARNING")

        config = load_config(
            config_path=yaml_config,
            cli_overrides={"log_level": "ERROR"},
        )
        assert config.log_level == "ERROR"

    def test_cli_overrides_with_sectioned_format(self, yaml_config: Path) -> None:
        config = load_config(
            config_path=yaml_config,
            cli_overrides={"acquisition": {"batch_size": 7}},
        )
        assert config.acquisition.batch_size == 7
        assert config.acquisition.search_interval_mins == 30

    def test_cli_overrides_defaults_without_yaml(self) -> None:
        config = load_config(
            cli_overrides={"app_name": "custom-app", "environment": "prod"},
        )
        assert config.app_name == "custom-app"
        assert config.log_format == "json"
