"""Process-wide settings read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)

    try:
        return default if raw is None else int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)

    try:
        return default if raw is None else float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag; unrecognised values fall back to ``default``."""
    raw = os.getenv(name)

    if raw is None:
        return default

    normalized = raw.strip().lower()

    if normalized in _TRUTHY:
        return True

    if normalized in _FALSY:
        return False

    return default


@dataclass(slots=True)
class LoggingSettings:
    level: str
    format: str
    color_enabled: bool


@dataclass(slots=True)
class PollerSettings:
    default_update_every: int
    rpc_request_timeout_seconds: float


@dataclass(slots=True)
class ChartSettings:
    base_priority: int


@dataclass(slots=True)
class HealthSettings:
    readiness_stale_threshold_seconds: int


@dataclass(slots=True)
class ServerSettings:
    host: str
    health_port: int
    metrics_port: int


@dataclass(slots=True)
class ConfigSettings:
    config_path_env: str | None
    default_config_filename: str

    def resolve_config_path(self) -> Path:
        """Return the configured file, a file inside a configured directory, or ``./config.toml``."""

        if not self.config_path_env:
            return Path.cwd().joinpath(self.default_config_filename).resolve()

        configured = Path(self.config_path_env).expanduser().resolve()

        if configured.is_dir():
            return configured.joinpath(self.default_config_filename)

        return configured


@dataclass(slots=True)
class AppSettings:
    logging: LoggingSettings
    poller: PollerSettings
    charts: ChartSettings
    health: HealthSettings
    server: ServerSettings
    config: ConfigSettings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings(
        logging=LoggingSettings(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            format=os.getenv("LOG_FORMAT", "text").lower(),
            color_enabled=_env_bool("LOG_COLOR_ENABLED", True),
        ),
        poller=PollerSettings(
            default_update_every=_env_int("DEFAULT_UPDATE_EVERY", 5),
            rpc_request_timeout_seconds=_env_float("RPC_REQUEST_TIMEOUT_SECONDS", 10.0),
        ),
        charts=ChartSettings(
            base_priority=_env_int("CHART_BASE_PRIORITY", 60000),
        ),
        health=HealthSettings(
            readiness_stale_threshold_seconds=_env_int("READINESS_STALE_THRESHOLD_SECONDS", 300),
        ),
        server=ServerSettings(
            host=os.getenv("EXPORTER_LISTEN_HOST", "0.0.0.0"),
            health_port=_env_int("HEALTH_PORT", 8080),
            metrics_port=_env_int("METRICS_PORT", 9100),
        ),
        config=ConfigSettings(
            config_path_env=os.getenv("MULTICHAIN_EXPORTER_CONFIG_PATH"),
            default_config_filename="config.toml",
        ),
    )


__all__ = [
    "AppSettings",
    "ChartSettings",
    "ConfigSettings",
    "HealthSettings",
    "LoggingSettings",
    "PollerSettings",
    "ServerSettings",
    "get_settings",
]
