"""Node health and readiness reporting, plus metrics text post-processing."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, Tuple

from fastapi import status

from .metrics import CONFIGURED_NODES, NODE_HEALTH_STATUS, NODE_LAST_SUCCESS
from .settings import get_settings

SETTINGS = get_settings()
READINESS_STALE_THRESHOLD_SECONDS = SETTINGS.health.readiness_stale_threshold_seconds

NodeEntry = Dict[str, str]


def _node_statuses() -> Iterator[Tuple[str, str, bool, float | None]]:
    """Yield ``(node, chain, healthy, last_success)`` sorted by node then chain."""

    for (node_name, chain), healthy in sorted(NODE_HEALTH_STATUS.items()):
        yield node_name, chain, healthy, NODE_LAST_SUCCESS.get((node_name, chain))


def _format_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def generate_health_report(
    include_details: bool = False,
) -> Tuple[str, int, List[NodeEntry]]:
    """Summarise the last collection outcome of every node.

    Returns ``(status, http_status_code, node_entries)``. With no configured
    nodes the exporter is ``ok``; with nodes but no finished cycle yet it is
    ``initializing``. Otherwise it is ``ok`` when every node succeeded,
    ``degraded`` when some did and ``unhealthy`` when none did.
    """

    if not CONFIGURED_NODES:
        return "ok", status.HTTP_200_OK, []

    if not NODE_HEALTH_STATUS:
        return "initializing", status.HTTP_503_SERVICE_UNAVAILABLE, []

    entries: List[NodeEntry] = []
    outcomes: List[bool] = []

    for node_name, chain, healthy, last_success in _node_statuses():
        outcomes.append(healthy)

        entry: NodeEntry = {
            "node": node_name,
            "chain": chain,
            "status": "ok" if healthy else "unhealthy",
        }

        if include_details and last_success is not None:
            entry["last_success_timestamp"] = _format_timestamp(last_success)

        entries.append(entry)

    if all(outcomes):
        return "ok", status.HTTP_200_OK, entries

    if any(outcomes):
        return "degraded", status.HTTP_200_OK, entries

    return "unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE, entries


def generate_readiness_report() -> Tuple[bool, List[NodeEntry]]:
    """Report ready when at least one node succeeded within the stale threshold."""

    if not CONFIGURED_NODES:
        return True, []

    if not NODE_HEALTH_STATUS:
        return False, []

    cutoff = time.time() - READINESS_STALE_THRESHOLD_SECONDS

    entries: List[NodeEntry] = []

    for node_name, chain, healthy, last_success in _node_statuses():
        ready = healthy and last_success is not None and last_success >= cutoff

        entry: NodeEntry = {
            "node": node_name,
            "chain": chain,
            "status": "ready" if ready else "not_ready",
        }

        if last_success is not None:
            entry["last_success_timestamp"] = _format_timestamp(last_success)

        entries.append(entry)

    return any(entry["status"] == "ready" for entry in entries), entries


def _expand_sample_value(line: str) -> str:
    metric, separator, value = line.rpartition(" ")

    if not separator or "e" not in value.lower() or "inf" in value.lower():
        return line

    try:
        return f"{metric} {format(Decimal(value), 'f')}"
    except InvalidOperation:
        return line


def format_metrics_payload(payload: bytes) -> bytes:
    """Rewrite sample values in scientific notation as plain decimals.

    Large byte counts such as mempool memory otherwise render as ``1.2e+07``.
    """

    lines = [
        line if not line or line.startswith("#") else _expand_sample_value(line)
        for line in payload.decode().splitlines()
    ]

    return "\n".join(lines).encode()


__all__ = [
    "READINESS_STALE_THRESHOLD_SECONDS",
    "format_metrics_payload",
    "generate_health_report",
    "generate_readiness_report",
]
