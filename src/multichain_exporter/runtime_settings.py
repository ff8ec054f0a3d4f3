"""Environment settings bundled with the node configuration document they apply to."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from .config import ExporterConfig, parse_exporter_config, read_raw_config, resolve_config_path
from .settings import AppSettings, get_settings


@dataclass(slots=True)
class RuntimeSettings:
    """Settings, the untouched ``config.toml`` document and where it was read from.

    The document is kept raw so the orchestrator can apply its own skipping
    rules when scheduling nodes.
    """

    app: AppSettings

    raw_config: dict[str, Any]

    config_path: Path

    def resolve_exporter_config(self) -> ExporterConfig:
        return parse_exporter_config(
            self.raw_config,
            default_update_every=self.app.poller.default_update_every,
        )


@lru_cache(maxsize=1)
def get_runtime_settings(*, config_path: Path | None = None) -> RuntimeSettings:
    """Read the configuration file once and cache the result.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigError: If the file is not valid TOML.
    """

    settings = get_settings()
    path = config_path or resolve_config_path(settings)

    return RuntimeSettings(app=settings, raw_config=read_raw_config(path), config_path=path)


def reset_runtime_settings_cache() -> None:
    get_runtime_settings.cache_clear()


__all__ = [
    "RuntimeSettings",
    "get_runtime_settings",
    "reset_runtime_settings_cache",
]
