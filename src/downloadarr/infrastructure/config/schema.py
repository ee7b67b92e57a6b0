"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

# Every outbound network call carries a hard timeout in this range.
MIN_NETWORK_TIMEOUT = 3.0
MAX_NETWORK_TIMEOUT = 10.0


def _normalize_path(value: Any) -> Path:
    """
    Normalize a path-like value without causing filesystem side-effects.

    This function MUST NOT create directories or files.
    """
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


def _bounded_timeout(value: float, field: str) -> float:
    if not MIN_NETWORK_TIMEOUT <= value <= MAX_NETWORK_TIMEOUT:
        raise ValueError(
            f"{field} must be between {MIN_NETWORK_TIMEOUT:g} and "
            f"{MAX_NETWORK_TIMEOUT:g} seconds"
        )
    return value


class CacheConfig(BaseModel):
    """Record store configuration (backend-agnostic)."""

    backend: Literal["diskcache", "redis"] = Field(
        default="diskcache",
        description="Store backend: 'diskcache' (SQLite) or 'redis'",
    )
    directory: Path = Field(
        default=Path("./data/downloadarr"),
        validation_alias=AliasChoices("directory", "dir"),
        description="Diskcache SQLite DB path",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis)",
    )
    max_concurrent: int = Field(
        default=10,
        description="Max parallel store ops (semaphore limit)",
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _normalize_path(v)


class DownloadEngineConfig(BaseModel):
    """aria2 JSON-RPC endpoint."""

    host: str = Field(default="aria2", description="Engine host name.")
    port: int = Field(default=6800, description="Engine RPC port.")
    secret: str = Field(default="", description="aria2 rpc-secret (token).")
    rpc_path: str = Field(default="/jsonrpc", description="JSON-RPC endpoint path.")
    timeout_seconds: float = Field(
        default=10.0, description="Per-call RPC timeout in seconds."
    )
    download_root: str = Field(
        default="/downloads",
        description="Root directory the engine writes into.",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        return _bounded_timeout(v, "timeout_seconds")


class RoutingConfig(BaseModel):
    """Egress routing component (VPN sidecar) used by the health monitor."""

    host: str = Field(default="vpn", description="Routing component host name.")
    network_mode: bool = Field(
        default=False,
        description="Engine shares the routing component's network namespace.",
    )
    health_port: int = Field(default=8080)
    health_path: str = Field(default="/health")
    health_timeout_seconds: float = Field(default=5.0)
    reachability_timeout_seconds: float = Field(default=3.0)
    allow_direct_fallback: bool = Field(
        default=False,
        description="Use the direct path when routing is configured but unhealthy.",
    )
    container_name: str = Field(
        default="vpn", description="Container name reported by the container status check."
    )
    health_check_limit: int = Field(
        default=12, description="Max outbound health checks per window."
    )
    health_check_window_ms: int = Field(default=60_000)

    @field_validator("health_timeout_seconds", "reachability_timeout_seconds")
    @classmethod
    def _validate_timeouts(cls, v: float, info: ValidationInfo) -> float:
        return _bounded_timeout(v, info.field_name)


class RateLimitRuleConfig(BaseModel):
    limit: int = Field(default=100, ge=1)
    window_ms: int = Field(default=60_000, ge=1)


class IndexerConfig(BaseModel):
    """One Jackett-compatible indexer aggregator endpoint."""

    name: str
    url: str
    api_key: str = ""
    enabled: bool = True
    timeout_seconds: float = Field(
        default=10.0, description="Hard timeout for one search call."
    )
    rate_limit: RateLimitRuleConfig = Field(
        default_factory=lambda: RateLimitRuleConfig(limit=30),
        description="Outbound searches allowed per window for this indexer.",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        return _bounded_timeout(v, "timeout_seconds")


class AcquisitionConfig(BaseModel):
    """Search cadence and scheduler batching."""

    search_interval_mins: int = Field(default=30, ge=1)
    first_search_delay_mins: int = Field(default=1, ge=0)
    max_search_attempts: int = Field(default=50, ge=1)
    request_ttl_days: int = Field(
        default=30, ge=1, description="Searching requests expire after this many days."
    )
    check_interval_seconds: float = Field(default=30.0, gt=0)
    initial_delay_seconds: float = Field(default=10.0, ge=0)
    batch_size: int = Field(default=3, ge=1)
    batch_delay_seconds: float = Field(default=2.0, ge=0)


class OrganizeConfig(BaseModel):
    """Library roots and reverse-index cadence."""

    movies_dir: Path = Field(default=Path("/library/movies"))
    tv_dir: Path = Field(default=Path("/library/tv-shows"))
    games_dir: Path = Field(default=Path("/library/games"))
    scan_interval_minutes: int = Field(default=60, ge=1)
    delete_completed: bool = Field(
        default=False,
        description="Remove queue items once they have been placed.",
    )

    @field_validator("movies_dir", "tv_dir", "games_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Path:
        return _normalize_path(v)


class ApiConfig(BaseModel):
    """Inbound API rate limiting."""

    rate_limit: RateLimitRuleConfig = Field(default_factory=RateLimitRuleConfig)
    route_limits: dict[str, RateLimitRuleConfig] = Field(
        default_factory=lambda: {
            "POST /api/v1/requests": RateLimitRuleConfig(limit=10),
            "POST /api/v1/organize/scan": RateLimitRuleConfig(limit=2),
        },
        description="Per-route overrides keyed by 'METHOD /path'.",
    )


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/cache/download_engine/...).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="downloadarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default timeout for outgoing HTTP requests.",
    )
    http_user_agent: str = Field(
        default="Downloadarr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    download_engine: DownloadEngineConfig = Field(default_factory=DownloadEngineConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    indexers: list[IndexerConfig] = Field(default_factory=list)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    organize: OrganizeConfig = Field(default_factory=OrganizeConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    @property
    def routing_configured(self) -> bool:
        """True when the engine's egress goes through the routing component."""
        return (
            self.routing.network_mode
            or self.download_engine.host == self.routing.host
        )

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": self.cache.model_dump(mode="json"),
            "download_engine": self.download_engine.model_dump(mode="json"),
            "routing": self.routing.model_dump(mode="json"),
            "indexers": [i.model_dump(mode="json") for i in self.indexers],
            "acquisition": self.acquisition.model_dump(mode="json"),
            "organize": self.organize.model_dump(mode="json"),
            "api": self.api.model_dump(mode="json"),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read DOWNLOADARR_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - DOWNLOADARR_LOG_LEVEL
    - DOWNLOADARR_ENGINE_HOST
    - DOWNLOADARR_ENGINE_SECRET
    - DOWNLOADARR_ROUTING_HOST
    """

    model_config = SettingsConfigDict(
        env_prefix="DOWNLOADARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_backend: Optional[Literal["diskcache", "redis"]] = None
    cache_dir: Optional[Path] = None
    cache_redis_url: Optional[str] = None

    engine_host: Optional[str] = None
    engine_port: Optional[int] = None
    engine_secret: Optional[str] = None
    download_root: Optional[str] = None

    routing_host: Optional[str] = None
    routing_network_mode: Optional[bool] = None
    routing_allow_direct_fallback: Optional[bool] = None

    movies_dir: Optional[Path] = None
    tv_dir: Optional[Path] = None
    games_dir: Optional[Path] = None

    @field_validator("cache_dir", "movies_dir", "tv_dir", "games_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
