"""Turn a raw configuration document into scheduled per-node collectors."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from .config import NodeConfig, parse_node_configs, resolve_global_update_every
from .logging import build_log_extra, get_logger

LOGGER = get_logger(__name__)


@runtime_checkable
class NodeScheduler(Protocol):
    def schedule(self, node: NodeConfig) -> None: ...


def configure(
    raw_config: Mapping[str, Any],
    scheduler: NodeScheduler,
    *,
    default_update_every: int | None = None,
) -> int:
    """Schedule one collector per valid ``servers`` entry.

    Entries missing a mandatory field are skipped without affecting the
    others. Returns the number of nodes handed to the scheduler, 0 when the
    document has no ``servers`` key.
    """
    update_every = resolve_global_update_every(raw_config, default_update_every)

    added = 0

    for node in parse_node_configs(raw_config, update_every=update_every):
        LOGGER.debug(
            "%s: url: %s, update_every: %s",
            node.name,
            node.url,
            node.update_every,
            extra=build_log_extra(node=node),
        )

        scheduler.schedule(node)
        added += 1

    return added


__all__ = ["NodeScheduler", "configure"]
