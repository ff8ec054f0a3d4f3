"""Async control loop for node polling."""

from __future__ import annotations

import asyncio
import logging
import time

from ..charts import ChartRegistry
from ..config import NodeConfig
from ..context import ApplicationContext, get_application_context
from ..logging import build_log_extra, get_logger, log_duration
from ..metrics import MetricsStoreProtocol, record_poll_failure
from ..rpc import RpcClientProtocol
from .collect import collect_node_metrics_sync

LOGGER = get_logger(__name__)


async def poll_node(
    node: NodeConfig,
    *,
    context: ApplicationContext | None = None,
) -> None:
    """Collect metrics for a node every ``update_every`` seconds until cancelled.

    There is no failure backoff: a failed cycle is simply followed by the
    next scheduled one.

    Args:
        node: Node configuration to poll.
        context: Optional application context (defaults to global context).
    """

    context_obj = context or get_application_context()

    interval_seconds = node.update_every
    LOGGER.info(
        "Polling %s every %s seconds.",
        node.name,
        interval_seconds,
        extra=build_log_extra(node=node),
    )

    rpc_client = context_obj.create_rpc_client(node)

    try:
        while True:
            start_time = time.monotonic()

            try:
                with log_duration(
                    LOGGER,
                    "poller_iteration",
                    level=logging.INFO,
                    extra=build_log_extra(node=node),
                ):
                    await collect_node_metrics(
                        node,
                        rpc_client=rpc_client,
                        registry=context_obj.chart_registry,
                        metrics=context_obj.metrics,
                    )
            except asyncio.CancelledError:
                LOGGER.debug(
                    "Polling task for %s cancelled.",
                    node.name,
                    extra=build_log_extra(node=node),
                )
                raise
            except Exception as exc:  # noqa: BLE001
                # Programming errors must not stop this node's schedule.
                LOGGER.exception(
                    "Unexpected error while polling node %s.",
                    node.name,
                    exc_info=exc,
                    extra=build_log_extra(node=node),
                )
                record_poll_failure(node, metrics=context_obj.metrics)

            elapsed = time.monotonic() - start_time
            sleep_duration = max(interval_seconds - elapsed, 0)

            if sleep_duration > 0:
                await asyncio.sleep(sleep_duration)
    finally:
        if rpc_client is not None:
            rpc_client.close()


async def collect_node_metrics(
    node: NodeConfig,
    *,
    rpc_client: RpcClientProtocol,
    registry: ChartRegistry,
    metrics: MetricsStoreProtocol | None = None,
) -> bool:
    """Execute one collection cycle inside a worker thread.

    Returns:
        True if charts were updated, False otherwise.
    """

    return await asyncio.to_thread(
        collect_node_metrics_sync,
        node,
        rpc_client,
        registry,
        metrics,
    )


__all__ = ["collect_node_metrics", "poll_node"]
