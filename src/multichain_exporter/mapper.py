"""Translate node snapshots into ordered chart samples."""

from __future__ import annotations

from .charts import CHART_LAYOUTS, ChartRegistry
from .config import NodeConfig
from .exceptions import SnapshotValidationError
from .models import ChartKind, ChartSample, Snapshot

NODE_CHART_ORDER = (
    ChartKind.BLOCKS_SIZE,
    ChartKind.BLOCKS_MEMORY,
    ChartKind.BLOCKS_COUNT,
    ChartKind.CONNECTIONS,
)

STREAM_CHART_ORDER = (
    ChartKind.STREAM_ITEMS,
    ChartKind.STREAM_KEYS,
)


def is_snapshot_valid(snapshot: Snapshot | None) -> bool:
    return snapshot is not None and not snapshot.missing_required_fields()


def validate_snapshot(snapshot: Snapshot | None, node: NodeConfig | None = None) -> Snapshot:
    """Return the snapshot if it can be charted, otherwise raise.

    Raises:
        SnapshotValidationError: If the snapshot is absent or lacks
            ``blocks``/``connections``.
    """
    node_name = node.name if node is not None else None

    if snapshot is None:
        raise SnapshotValidationError("No snapshot was collected.", node=node_name)

    missing = snapshot.missing_required_fields()

    if missing:
        raise SnapshotValidationError(
            f"Snapshot is missing required field(s): {', '.join(missing)}.",
            node=node_name,
            missing_fields=missing,
        )

    return snapshot


def map_to_charts(
    node: NodeConfig,
    snapshot: Snapshot,
    registry: ChartRegistry,
) -> list[ChartSample]:
    """Build chart samples for a validated snapshot.

    Subscribed streams come first, in the order ``liststreams`` returned
    them, followed by the node-level charts.
    """
    samples: list[ChartSample] = []

    for stream in snapshot.streams:
        if not stream.subscribed:
            continue

        for kind in STREAM_CHART_ORDER:
            chart = registry.get_or_create_chart(node, kind, stream.name)
            samples.append(
                ChartSample(
                    chart=chart,
                    values=[
                        (dimension_id, getattr(stream, source))
                        for dimension_id, source in CHART_LAYOUTS[kind].sources
                    ],
                )
            )

    for kind in NODE_CHART_ORDER:
        chart = registry.get_or_create_chart(node, kind)
        samples.append(
            ChartSample(
                chart=chart,
                values=[
                    (dimension_id, getattr(snapshot, source))
                    for dimension_id, source in CHART_LAYOUTS[kind].sources
                ],
            )
        )

    return samples


__all__ = [
    "NODE_CHART_ORDER",
    "STREAM_CHART_ORDER",
    "is_snapshot_valid",
    "map_to_charts",
    "validate_snapshot",
]
