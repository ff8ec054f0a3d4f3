"""Polling package for MultiChain node metrics."""

from .collect import collect_node_metrics_sync
from .control import collect_node_metrics, poll_node
from .manager import PollerManager, get_poller_manager, reset_poller_manager

__all__ = [
    "collect_node_metrics",
    "collect_node_metrics_sync",
    "poll_node",
    "PollerManager",
    "get_poller_manager",
    "reset_poller_manager",
]
