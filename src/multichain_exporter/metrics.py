"""Prometheus metric registry and helpers for exporter state."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Iterable, Protocol, runtime_checkable

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from .config import NodeConfig
from .models import ChartKind

RPC_DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

CHART_GAUGE_SPECS: dict[ChartKind, tuple[str, str]] = {
    ChartKind.STREAM_ITEMS: (
        "multichain_stream_items",
        "Confirmed and unconfirmed item counts of subscribed streams.",
    ),
    ChartKind.STREAM_KEYS: (
        "multichain_stream_keys",
        "Number of distinct keys in subscribed streams.",
    ),
    ChartKind.BLOCKS_SIZE: (
        "multichain_blocks_size_transactions",
        "Number of transactions waiting in the node mempool.",
    ),
    ChartKind.BLOCKS_MEMORY: (
        "multichain_blocks_memory_bytes",
        "Size in bytes of the transactions waiting in the node mempool.",
    ),
    ChartKind.BLOCKS_COUNT: (
        "multichain_blocks",
        "Block height reported by the node.",
    ),
    ChartKind.CONNECTIONS: (
        "multichain_connections",
        "Number of peer connections reported by the node.",
    ),
}


@dataclass(slots=True)
class ExporterMetrics:
    up: Gauge
    configured_nodes: Gauge
    registered_charts: Gauge


@dataclass(slots=True)
class NodeMetrics:
    poll_success: Gauge
    poll_timestamp: Gauge


@dataclass(slots=True)
class RpcMetrics:
    call_duration: Histogram
    errors: Counter


@runtime_checkable
class MetricsStoreProtocol(Protocol):
    registry: CollectorRegistry
    exporter: ExporterMetrics
    node: NodeMetrics
    rpc: RpcMetrics
    charts: dict[ChartKind, Gauge]


@dataclass(slots=True)
class MetricsBundle(MetricsStoreProtocol):
    registry: CollectorRegistry
    exporter: ExporterMetrics
    node: NodeMetrics
    rpc: RpcMetrics
    charts: dict[ChartKind, Gauge]


def chart_label_names(kind: ChartKind) -> tuple[str, ...]:
    if kind.per_stream:
        return ("node", "stream", "dimension")

    return ("node", "dimension")


def create_metrics(registry: CollectorRegistry | None = None) -> MetricsBundle:
    registry = registry or CollectorRegistry()

    exporter = ExporterMetrics(
        up=Gauge(
            "multichain_exporter_up",
            "Indicates whether the exporter is available (1 for up, 0 for down).",
            registry=registry,
        ),
        configured_nodes=Gauge(
            "multichain_exporter_configured_nodes",
            "Number of MultiChain nodes currently configured in the exporter.",
            registry=registry,
        ),
        registered_charts=Gauge(
            "multichain_exporter_registered_charts",
            "Number of chart definitions registered with the metrics sink.",
            registry=registry,
        ),
    )

    node = NodeMetrics(
        poll_success=Gauge(
            "multichain_poll_success",
            "Indicates whether the most recent collection cycle succeeded (1) or failed (0).",
            labelnames=("node", "chain"),
            registry=registry,
        ),
        poll_timestamp=Gauge(
            "multichain_poll_timestamp_seconds",
            "Unix timestamp of the most recent successful collection cycle.",
            labelnames=("node", "chain"),
            registry=registry,
        ),
    )

    rpc = RpcMetrics(
        call_duration=Histogram(
            "multichain_rpc_call_duration_seconds",
            "Duration of JSON-RPC calls made to MultiChain nodes.",
            labelnames=("node", "method"),
            buckets=RPC_DURATION_BUCKETS,
            registry=registry,
        ),
        errors=Counter(
            "multichain_rpc_errors",
            "Number of failed JSON-RPC calls by error type.",
            labelnames=("node", "method", "error_type"),
            registry=registry,
        ),
    )

    charts = {
        kind: Gauge(
            metric_name,
            description,
            labelnames=chart_label_names(kind),
            registry=registry,
        )
        for kind, (metric_name, description) in CHART_GAUGE_SPECS.items()
    }

    return MetricsBundle(
        registry=registry,
        exporter=exporter,
        node=node,
        rpc=rpc,
        charts=charts,
    )


_METRICS: MetricsStoreProtocol = create_metrics()


def get_metrics() -> MetricsStoreProtocol:
    return _METRICS


def set_metrics(bundle: MetricsStoreProtocol) -> None:
    global _METRICS
    _METRICS = bundle


def reset_metrics_state(registry: CollectorRegistry | None = None) -> MetricsStoreProtocol:
    """Rebuild the metrics bundle and clear all cached node state."""

    bundle = create_metrics(registry)
    set_metrics(bundle)

    CONFIGURED_NODES.clear()
    NODE_HEALTH_STATUS.clear()
    NODE_LAST_SUCCESS.clear()

    return bundle


CONFIGURED_NODES: set[str] = set()

NODE_HEALTH_STATUS: dict[tuple[str, str], bool] = {}

NODE_LAST_SUCCESS: Dict[tuple[str, str], float] = {}


def node_identity(node: NodeConfig) -> tuple[str, str]:
    """Return a stable identity for a node configuration."""

    return (node.name, node.chain)


def set_configured_nodes(nodes: Iterable[NodeConfig]) -> None:
    CONFIGURED_NODES.clear()

    for node in nodes:
        CONFIGURED_NODES.add(node.name)

    get_metrics().exporter.configured_nodes.set(len(CONFIGURED_NODES))


def record_poll_success(
    node: NodeConfig,
    *,
    timestamp: float | None = None,
    metrics: MetricsStoreProtocol | None = None,
) -> None:
    """Record a successful collection cycle for the given node."""

    bundle = metrics or get_metrics()
    labels = node_identity(node)

    now = time.time() if timestamp is None else timestamp

    bundle.node.poll_success.labels(*labels).set(1)
    bundle.node.poll_timestamp.labels(*labels).set(now)
    NODE_HEALTH_STATUS[labels] = True
    NODE_LAST_SUCCESS[labels] = now


def record_poll_failure(
    node: NodeConfig,
    *,
    metrics: MetricsStoreProtocol | None = None,
) -> None:
    """Record a failed collection cycle; chart values keep their last state."""

    bundle = metrics or get_metrics()
    labels = node_identity(node)

    bundle.node.poll_success.labels(*labels).set(0)
    NODE_HEALTH_STATUS[labels] = False


def record_rpc_call_duration(
    node: NodeConfig,
    method: str,
    duration_seconds: float,
    *,
    metrics: MetricsStoreProtocol | None = None,
) -> None:
    bundle = metrics or get_metrics()

    bundle.rpc.call_duration.labels(node.name, method).observe(duration_seconds)


def record_rpc_error(
    node: NodeConfig,
    method: str,
    error_type: str,
    *,
    metrics: MetricsStoreProtocol | None = None,
) -> None:
    bundle = metrics or get_metrics()

    bundle.rpc.errors.labels(node.name, method, error_type).inc()


__all__ = [
    "CHART_GAUGE_SPECS",
    "CONFIGURED_NODES",
    "ExporterMetrics",
    "MetricsBundle",
    "MetricsStoreProtocol",
    "NODE_HEALTH_STATUS",
    "NODE_LAST_SUCCESS",
    "NodeMetrics",
    "RpcMetrics",
    "chart_label_names",
    "create_metrics",
    "get_metrics",
    "node_identity",
    "record_poll_failure",
    "record_poll_success",
    "record_rpc_call_duration",
    "record_rpc_error",
    "reset_metrics_state",
    "set_configured_nodes",
    "set_metrics",
]
