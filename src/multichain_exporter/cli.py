"""``multichain-exporter-config``: check a configuration file or dump what it resolves to."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

from .config import ExporterConfig, NodeConfig, load_exporter_config
from .exceptions import ConfigError
from .runtime_settings import RuntimeSettings, get_runtime_settings

MASKED_VALUE = "<masked>"
SECRET_NODE_FIELDS = frozenset({"password"})


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multichain-exporter-config",
        description="Check a multichain-exporter configuration file.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=_expand_path,
        default=None,
        help="Configuration file or directory (default: MULTICHAIN_EXPORTER_CONFIG_PATH, then ./config.toml).",
    )
    parser.add_argument(
        "--print-resolved",
        action="store_true",
        help="Print settings and nodes as JSON instead of a summary line.",
    )
    parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Leave RPC passwords unmasked in --print-resolved output.",
    )
    return parser


def _expand_path(raw: str) -> Path:
    return Path(raw).expanduser().resolve()


def validate_config(config_path: str | None = None) -> ExporterConfig:
    """Parse the configuration at ``config_path`` and return it.

    Raises:
        FileNotFoundError: If no configuration file exists there.
        ConfigError: If the document is invalid.
    """

    return load_exporter_config(_expand_path(config_path) if config_path else None)


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value):
        value = asdict(value)

    if isinstance(value, dict):
        return {key: _to_jsonable(item) for key, item in value.items()}

    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]

    if isinstance(value, Path):
        return str(value)

    return value


def _describe_node(node: NodeConfig, *, show_secrets: bool) -> dict[str, Any]:
    described = _to_jsonable(node)
    described["url"] = node.url

    if not show_secrets:
        described.update({field: MASKED_VALUE for field in SECRET_NODE_FIELDS & described.keys()})

    return described


def _render_runtime_settings(runtime: RuntimeSettings, *, show_secrets: bool) -> str:
    resolved = runtime.resolve_exporter_config()

    document = {
        "config_path": str(runtime.config_path),
        "settings": _to_jsonable(runtime.app),
        "enable_autodetect": resolved.enable_autodetect,
        "update_every": resolved.update_every,
        "nodes": [_describe_node(node, show_secrets=show_secrets) for node in resolved.nodes],
    }

    return json.dumps(document, indent=2, sort_keys=True)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if args.print_resolved:
            runtime = get_runtime_settings(config_path=args.config_path)
            output = _render_runtime_settings(runtime, show_secrets=args.show_secrets)
        else:
            exporter_config = load_exporter_config(args.config_path)
            output = f"Configuration OK ({len(exporter_config.nodes)} node(s))"
    except FileNotFoundError as exc:
        parser.error(f"Config file not found: {exc}")
    except ConfigError as exc:
        parser.error(str(exc))

    print(output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
