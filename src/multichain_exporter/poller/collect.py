"""Synchronous metric collection routines invoked by the poller."""

from __future__ import annotations

from ..charts import ChartRegistry
from ..collector import collect
from ..config import NodeConfig
from ..exceptions import SnapshotValidationError
from ..logging import build_log_extra, get_logger, log_duration
from ..mapper import map_to_charts, validate_snapshot
from ..metrics import MetricsStoreProtocol, record_poll_failure, record_poll_success
from ..rpc import RpcClientProtocol
from ..sinks import publish_samples

LOGGER = get_logger(__name__)


def collect_node_metrics_sync(
    node: NodeConfig,
    rpc_client: RpcClientProtocol,
    registry: ChartRegistry,
    metrics: MetricsStoreProtocol | None = None,
) -> bool:
    """Run one collection cycle for a node within the polling thread.

    Returns True when charts were updated. A cycle that fails anywhere
    leaves every chart at its previously written values.
    """

    snapshot = collect(node, rpc_client)

    if snapshot is None:
        record_poll_failure(node, metrics=metrics)

        return False

    try:
        validate_snapshot(snapshot, node)
    except SnapshotValidationError as exc:
        LOGGER.warning(
            "Ignoring snapshot for node %s: %s",
            node.name,
            exc.message,
            extra=build_log_extra(node=node, additional={"missing_fields": exc.missing_fields}),
        )

        record_poll_failure(node, metrics=metrics)

        return False

    samples = map_to_charts(node, snapshot, registry)

    with log_duration(
        LOGGER,
        "publish_samples_completed",
        extra=build_log_extra(node=node, additional={"chart_count": len(samples)}),
    ):
        publish_samples(registry.sink, samples)

    record_poll_success(node, metrics=metrics)

    return True


__all__ = ["collect_node_metrics_sync"]
