from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

from .exceptions import ConfigError, ValidationError
from .logging import get_logger
from .settings import AppSettings, get_settings

DEFAULT_ENV_PATH = Path.cwd().joinpath(".env").resolve()

load_dotenv(DEFAULT_ENV_PATH)

LOGGER = get_logger(__name__)

REQUIRED_NODE_FIELDS = ("name", "hostname", "port", "username", "password", "chain", "path")

SUPPORTED_PROTOCOLS = ("http", "https")


@dataclass(frozen=True, slots=True)
class NodeConfig:
    name: str

    hostname: str

    port: int

    username: str

    password: str

    chain: str

    path: str

    update_every: int

    protocol: str = "http"

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.hostname}:{self.port}{self.path}"


@dataclass(frozen=True, slots=True)
class ExporterConfig:
    """Top-level configuration document with its node entries resolved."""

    enable_autodetect: bool

    update_every: int

    nodes: list[NodeConfig] = field(default_factory=list)


def load_exporter_config(
    path: Path | None = None,
    *,
    default_update_every: int | None = None,
) -> ExporterConfig:
    config_path = path or resolve_config_path()

    data = read_raw_config(config_path)

    return parse_exporter_config(data, default_update_every=default_update_every)


def load_node_configs(path: Path | None = None) -> list[NodeConfig]:
    return load_exporter_config(path).nodes


def resolve_config_path(settings: AppSettings | None = None) -> Path:
    resolved_settings = settings or get_settings()

    return resolved_settings.config.resolve_config_path()


def read_raw_config(path: Path) -> dict[str, Any]:
    """Parse the TOML file at ``path`` after expanding ``$VAR`` and ``${VAR}`` references.

    Unknown variables are left as written.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the TOML is invalid.
    """
    document = os.path.expandvars(path.read_text(encoding="utf-8"))

    try:
        return tomllib.loads(document)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Configuration file is not valid TOML: {exc}",
            config_file=str(path),
        ) from exc


def resolve_global_update_every(
    data: Mapping[str, Any],
    default_update_every: int | None = None,
) -> int:
    fallback = default_update_every or get_settings().poller.default_update_every

    value = _coerce_optional_int(data.get("update_every"), "update_every", minimum=1)

    return fallback if value is None else value


def parse_exporter_config(
    data: Mapping[str, Any],
    *,
    default_update_every: int | None = None,
) -> ExporterConfig:
    update_every = resolve_global_update_every(data, default_update_every)

    enable_autodetect = _coerce_optional_bool(
        data.get("enable_autodetect"),
        "enable_autodetect",
        default=False,
    )

    return ExporterConfig(
        enable_autodetect=enable_autodetect,
        update_every=update_every,
        nodes=parse_node_configs(data, update_every=update_every),
    )


def parse_node_configs(data: Mapping[str, Any], *, update_every: int) -> list[NodeConfig]:
    """Build node configurations from the ``servers`` entries of a raw config.

    Entries missing a mandatory field are skipped quietly. Entries with
    malformed values or a name already taken are skipped with a warning.
    Neither aborts the remaining entries.

    Raises:
        ConfigError: If ``servers`` is present but is not an array.
    """
    servers_data = data.get("servers")

    if servers_data is None:
        return []

    if not isinstance(servers_data, list):
        raise ConfigError(
            "Configuration 'servers' section must be an array.",
            config_section="servers",
        )

    seen_names: set[str] = set()

    nodes: list[NodeConfig] = []

    for index, entry in enumerate(servers_data, start=1):
        location = f"servers[{index}]"

        if not isinstance(entry, Mapping):
            LOGGER.warning(
                "Skipping %s: entry must be a table.",
                location,
                extra={"config_section": location},
            )
            continue

        missing = [key for key in REQUIRED_NODE_FIELDS if entry.get(key) is None]

        if missing:
            LOGGER.debug(
                "Skipping %s: missing required field(s) %s.",
                location,
                ", ".join(missing),
                extra={"config_section": location},
            )
            continue

        try:
            node = _parse_node_config(entry, location, update_every)
        except ValidationError as exc:
            LOGGER.warning(
                "Skipping %s: %s",
                location,
                exc.message,
                extra={"config_section": location},
            )
            continue

        if node.name in seen_names:
            LOGGER.warning(
                "Skipping %s: duplicate node name '%s'.",
                location,
                node.name,
                extra={"config_section": location, "node": node.name},
            )
            continue

        seen_names.add(node.name)

        nodes.append(node)

    return nodes


def _parse_node_config(data: Mapping[str, Any], location: str, update_every: int) -> NodeConfig:
    """Parse one ``servers`` entry whose mandatory keys are all present.

    ``update_every`` is the global interval, used when the entry sets none.
    Raises ``ValidationError`` for a value of the wrong type or out of range.
    """
    name = _require_non_empty_string(data.get("name"), f"{location}.name")

    hostname = _require_non_empty_string(data.get("hostname"), f"{location}.hostname")

    port = _coerce_optional_int(data.get("port"), f"{location}.port", minimum=1, maximum=65535)

    username = _require_string(data.get("username"), f"{location}.username")

    password = _require_string(data.get("password"), f"{location}.password")

    chain = _require_non_empty_string(data.get("chain"), f"{location}.chain")

    path = _require_string(data.get("path"), f"{location}.path").strip()

    if not path.startswith("/"):
        path = f"/{path}"

    node_update_every = _coerce_optional_int(
        data.get("update_every"),
        f"{location}.update_every",
        minimum=1,
    )

    raw_protocol = data.get("protocol")

    protocol = "http"

    if raw_protocol is not None:
        protocol = _require_non_empty_string(raw_protocol, f"{location}.protocol").lower().rstrip(":")

        if protocol not in SUPPORTED_PROTOCOLS:
            raise ValidationError(
                f"{location}.protocol must be one of {', '.join(SUPPORTED_PROTOCOLS)}.",
                config_section=location,
                config_key="protocol",
                value=raw_protocol,
            )

    return NodeConfig(
        name=name,
        hostname=hostname,
        port=port,  # type: ignore[arg-type]
        username=username,
        password=password,
        chain=chain,
        path=path,
        update_every=update_every if node_update_every is None else node_update_every,
        protocol=protocol,
    )


def _invalid(location: str, problem: str, *, expected: str, value: Any) -> ValidationError:
    return ValidationError(
        f"{location} {problem}.",
        config_section=location,
        expected_type=expected,
        value=value,
    )


def _require_string(value: Any, location: str) -> str:
    if isinstance(value, str):
        return value

    raise _invalid(location, "must be a string", expected="string", value=type(value).__name__)


def _require_non_empty_string(value: Any, location: str) -> str:
    """Return ``value`` stripped, rejecting non-strings and blank strings."""

    if isinstance(value, str) and value.strip():
        return value.strip()

    shown = value if value is None or isinstance(value, str) else type(value).__name__

    raise _invalid(location, "must be a non-empty string", expected="string", value=shown)


def _coerce_optional_int(
    value: Any,
    location: str,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    """Return ``None`` for a missing value, otherwise an int within ``[minimum, maximum]``.

    Numeric strings are accepted (``port = "8570"``); booleans are not,
    even though ``bool`` is an ``int`` subclass.
    """
    if value is None:
        return None

    if isinstance(value, bool):
        raise _invalid(location, "must be an integer, not a boolean", expected="integer", value="bool")

    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise _invalid(location, "must be an integer", expected="integer", value=value) from exc

    if minimum is not None and number < minimum:
        raise _invalid(
            location,
            f"must be greater than or equal to {minimum}",
            expected=f"integer >= {minimum}",
            value=number,
        )

    if maximum is not None and number > maximum:
        raise _invalid(
            location,
            f"must be less than or equal to {maximum}",
            expected=f"integer <= {maximum}",
            value=number,
        )

    return number


TRUTHY_STRINGS = frozenset({"true", "1", "yes", "on"})
FALSY_STRINGS = frozenset({"false", "0", "no", "off"})


def _coerce_optional_bool(value: Any, location: str, *, default: bool) -> bool:
    if value is None:
        return default

    if isinstance(value, bool):
        return value

    normalized = value.strip().lower() if isinstance(value, str) else None

    if normalized in TRUTHY_STRINGS:
        return True

    if normalized in FALSY_STRINGS:
        return False

    raise _invalid(location, "must be a boolean (true/false)", expected="boolean", value=value)
