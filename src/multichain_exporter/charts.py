"""Chart definitions and the per-node chart registry."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .config import NodeConfig
from .logging import build_log_extra, get_logger
from .models import ChartDefinition, ChartKind, Dimension
from .sinks import ChartSinkProtocol

LOGGER = get_logger(__name__)

CHART_CONTEXT = "multichain"
DEFAULT_BASE_PRIORITY = 60000


@dataclass(frozen=True, slots=True)
class ChartLayout:
    """Static description of one chart kind.

    ``suffix``, ``title`` and ``family`` are format strings receiving
    ``node`` and ``stream``. ``sources`` pairs each dimension id with the
    snapshot (or stream) attribute it is read from.
    """

    suffix: str
    title: str
    units: str
    family: str
    chart_type: str
    sources: tuple[tuple[str, str], ...]

    @property
    def dimension_ids(self) -> tuple[str, ...]:
        return tuple(dimension_id for dimension_id, _ in self.sources)


CHART_LAYOUTS: dict[ChartKind, ChartLayout] = {
    ChartKind.STREAM_ITEMS: ChartLayout(
        suffix="stream.{stream}.items",
        title="{node} stream {stream} items",
        units="items",
        family="stream {stream}",
        chart_type="area",
        sources=(("confirmed", "confirmed"), ("unconfirmed", "unconfirmed")),
    ),
    ChartKind.STREAM_KEYS: ChartLayout(
        suffix="stream.{stream}.key",
        title="{node} stream {stream} keys",
        units="keys",
        family="stream {stream}",
        chart_type="area",
        sources=(("keys", "keys"),),
    ),
    ChartKind.BLOCKS_SIZE: ChartLayout(
        suffix="blocks.size",
        title="{node} blocks size",
        units="transactions",
        family="blocks",
        chart_type="area",
        sources=(("size", "mem_size"),),
    ),
    ChartKind.BLOCKS_MEMORY: ChartLayout(
        suffix="blocks.memory",
        title="{node} blocks memory",
        units="bytes",
        family="blocks",
        chart_type="area",
        sources=(("memory", "mem_bytes"),),
    ),
    ChartKind.BLOCKS_COUNT: ChartLayout(
        suffix="blocks.count",
        title="{node} blocks",
        units="blocks",
        family="blocks",
        chart_type="area",
        sources=(("blocks", "blocks"),),
    ),
    ChartKind.CONNECTIONS: ChartLayout(
        suffix="connections.count",
        title="{node} connections",
        units="connections",
        family="connections",
        chart_type="line",
        sources=(("connections", "connections"),),
    ),
}


def chart_id(node: NodeConfig, kind: ChartKind, stream_name: str | None = None) -> str:
    layout = CHART_LAYOUTS[kind]
    return f"{node.name}.{layout.suffix.format(stream=stream_name)}"


def create_dimension(dimension_id: str, name: str, divisor: int = 1) -> Dimension:
    return Dimension(id=dimension_id, name=name, divisor=divisor)


class ChartRegistry:
    """Get-or-create cache of chart definitions.

    Each chart is registered with the sink the first time it is requested;
    later requests return the cached definition without touching the sink.
    """

    def __init__(
        self,
        sink: ChartSinkProtocol,
        *,
        base_priority: int = DEFAULT_BASE_PRIORITY,
    ) -> None:
        self._sink = sink
        self._base_priority = base_priority
        self._charts: dict[str, ChartDefinition] = {}
        self._lock = threading.Lock()

    @property
    def sink(self) -> ChartSinkProtocol:
        return self._sink

    def __len__(self) -> int:
        with self._lock:
            return len(self._charts)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._charts

    def get_or_create_chart(
        self,
        node: NodeConfig,
        kind: ChartKind,
        stream_name: str | None = None,
    ) -> ChartDefinition:
        if kind.per_stream and stream_name is None:
            raise ValueError(f"Chart kind {kind.value!r} requires a stream name.")

        if not kind.per_stream:
            stream_name = None

        key = chart_id(node, kind, stream_name)

        with self._lock:
            chart = self._charts.get(key)

            if chart is not None:
                return chart

            chart = self._sink.register_chart(self._build_chart(key, node, kind, stream_name))
            self._charts[key] = chart

        LOGGER.debug(
            "Created chart %s.",
            key,
            extra=build_log_extra(node=node, stream=stream_name, additional={"chart_id": key}),
        )

        return chart

    def _build_chart(
        self,
        key: str,
        node: NodeConfig,
        kind: ChartKind,
        stream_name: str | None,
    ) -> ChartDefinition:
        layout = CHART_LAYOUTS[kind]

        return ChartDefinition(
            id=key,
            name="",
            title=layout.title.format(node=node.name, stream=stream_name),
            units=layout.units,
            family=layout.family.format(stream=stream_name),
            context=CHART_CONTEXT,
            type=layout.chart_type,
            priority=self._base_priority + 1,
            update_every=node.update_every,
            dimensions=tuple(
                create_dimension(dimension_id, dimension_id) for dimension_id in layout.dimension_ids
            ),
            kind=kind,
            node=node.name,
            stream=stream_name,
        )


__all__ = [
    "CHART_CONTEXT",
    "CHART_LAYOUTS",
    "ChartLayout",
    "ChartRegistry",
    "DEFAULT_BASE_PRIORITY",
    "chart_id",
    "create_dimension",
]
