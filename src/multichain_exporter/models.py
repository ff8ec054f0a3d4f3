"""Core data models used across the exporter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ChartKind(str, Enum):
    """Kinds of charts published for every node."""

    STREAM_ITEMS = "stream_items"
    STREAM_KEYS = "stream_keys"
    BLOCKS_SIZE = "blocks_size"
    BLOCKS_MEMORY = "blocks_memory"
    BLOCKS_COUNT = "blocks_count"
    CONNECTIONS = "connections"

    @property
    def per_stream(self) -> bool:
        return self in (ChartKind.STREAM_ITEMS, ChartKind.STREAM_KEYS)


@dataclass(slots=True)
class StreamStat:
    """Counters reported by ``liststreams`` for a single stream."""

    name: str
    subscribed: bool
    items: int = 0
    confirmed: int = 0
    keys: int = 0

    @classmethod
    def from_rpc(cls, entry: Mapping[str, Any]) -> StreamStat:
        """Build from one ``liststreams`` entry.

        Raises ``TypeError`` or ``ValueError`` for a non-boolean ``subscribed``
        flag or a count that is not a whole number; missing counts are 0.
        """
        subscribed = entry.get("subscribed", False)

        if not isinstance(subscribed, bool):
            raise TypeError(f"subscribed must be a boolean, got {type(subscribed).__name__}.")

        return cls(
            name=str(entry["name"]),
            subscribed=subscribed,
            items=_count(entry, "items"),
            confirmed=_count(entry, "confirmed"),
            keys=_count(entry, "keys"),
        )

    @property
    def unconfirmed(self) -> int:
        # Not clamped: confirmed > items surfaces as a negative value.
        return self.items - self.confirmed


def _count(entry: Mapping[str, Any], key: str) -> int:
    value = entry.get(key)

    if value is None:
        return 0

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}.")

    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be a whole number, got {value!r}.")

    return int(value)


@dataclass(slots=True)
class Snapshot:
    """Statistics gathered for one node during one collection cycle."""

    blocks: int | None = None
    connections: int | None = None
    mem_size: int | None = None
    mem_bytes: int | None = None
    streams: list[StreamStat] = field(default_factory=list)

    def missing_required_fields(self) -> list[str]:
        return [name for name in ("blocks", "connections") if getattr(self, name) is None]


@dataclass(frozen=True, slots=True)
class Dimension:
    id: str
    name: str
    algorithm: str = "absolute"
    multiplier: int = 1
    divisor: int = 1
    hidden: bool = False


@dataclass(frozen=True, slots=True)
class ChartDefinition:
    id: str
    name: str
    title: str
    units: str
    family: str
    context: str
    type: str
    priority: int
    update_every: int
    dimensions: tuple[Dimension, ...]
    kind: ChartKind
    node: str
    stream: str | None = None

    def dimension_ids(self) -> list[str]:
        return [dimension.id for dimension in self.dimensions]


@dataclass(slots=True)
class ChartSample:
    """Values for every dimension of a chart, in dimension order."""

    chart: ChartDefinition
    values: list[tuple[str, int | float | None]]

    def as_dict(self) -> dict[str, int | float | None]:
        return dict(self.values)


__all__ = [
    "ChartDefinition",
    "ChartKind",
    "ChartSample",
    "Dimension",
    "Snapshot",
    "StreamStat",
]
