from __future__ import annotations

import pytest

from multichain_exporter.charts import CHART_CONTEXT, ChartRegistry, chart_id
from multichain_exporter.config import NodeConfig
from multichain_exporter.models import ChartDefinition, ChartKind


def _build_node(name: str = "local", update_every: int = 5) -> NodeConfig:
    return NodeConfig(
        name=name,
        hostname="127.0.0.1",
        port=8570,
        username="multichainrpc",
        password="secret",
        chain="chain1",
        path="/",
        update_every=update_every,
    )


class _RecordingSink:
    def __init__(self) -> None:
        self.registered: list[ChartDefinition] = []

    def register_chart(self, chart: ChartDefinition) -> ChartDefinition:
        self.registered.append(chart)
        return chart

    def begin(self, chart: ChartDefinition) -> None:
        pass

    def set(self, dimension_id: str, value: int | float | None) -> None:
        pass

    def end(self) -> None:
        pass


@pytest.mark.parametrize(
    ("kind", "stream", "expected"),
    [
        (ChartKind.STREAM_ITEMS, "s1", "local.stream.s1.items"),
        (ChartKind.STREAM_KEYS, "s1", "local.stream.s1.key"),
        (ChartKind.BLOCKS_SIZE, None, "local.blocks.size"),
        (ChartKind.BLOCKS_MEMORY, None, "local.blocks.memory"),
        (ChartKind.BLOCKS_COUNT, None, "local.blocks.count"),
        (ChartKind.CONNECTIONS, None, "local.connections.count"),
    ],
)
def test_chart_id_formats(kind: ChartKind, stream: str | None, expected: str) -> None:
    assert chart_id(_build_node(), kind, stream) == expected


def test_get_or_create_chart_registers_once() -> None:
    sink = _RecordingSink()
    registry = ChartRegistry(sink)
    node = _build_node()

    first = registry.get_or_create_chart(node, ChartKind.BLOCKS_COUNT)
    second = registry.get_or_create_chart(node, ChartKind.BLOCKS_COUNT)

    assert first is second
    assert len(sink.registered) == 1
    assert len(registry) == 1
    assert "local.blocks.count" in registry


def test_chart_attributes() -> None:
    registry = ChartRegistry(_RecordingSink(), base_priority=60000)
    node = _build_node(update_every=3)

    items = registry.get_or_create_chart(node, ChartKind.STREAM_ITEMS, "s1")
    connections = registry.get_or_create_chart(node, ChartKind.CONNECTIONS)
    memory = registry.get_or_create_chart(node, ChartKind.BLOCKS_MEMORY)

    assert items.id == "local.stream.s1.items"
    assert items.dimension_ids() == ["confirmed", "unconfirmed"]
    assert items.units == "items"
    assert items.type == "area"
    assert items.context == CHART_CONTEXT
    assert items.priority == 60001
    assert items.update_every == 3
    assert items.stream == "s1"
    assert items.dimensions[0].algorithm == "absolute"

    assert connections.type == "line"
    assert connections.dimension_ids() == ["connections"]
    assert connections.stream is None

    assert memory.units == "bytes"
    assert memory.dimension_ids() == ["memory"]


def test_charts_are_scoped_per_node_and_stream() -> None:
    sink = _RecordingSink()
    registry = ChartRegistry(sink)

    registry.get_or_create_chart(_build_node("a"), ChartKind.STREAM_KEYS, "s1")
    registry.get_or_create_chart(_build_node("a"), ChartKind.STREAM_KEYS, "s2")
    registry.get_or_create_chart(_build_node("b"), ChartKind.STREAM_KEYS, "s1")

    assert [chart.id for chart in sink.registered] == [
        "a.stream.s1.key",
        "a.stream.s2.key",
        "b.stream.s1.key",
    ]


def test_stream_chart_requires_stream_name() -> None:
    registry = ChartRegistry(_RecordingSink())

    with pytest.raises(ValueError):
        registry.get_or_create_chart(_build_node(), ChartKind.STREAM_ITEMS)


def test_node_chart_ignores_stream_name() -> None:
    registry = ChartRegistry(_RecordingSink())
    node = _build_node()

    chart = registry.get_or_create_chart(node, ChartKind.BLOCKS_SIZE, "s1")

    assert chart.id == "local.blocks.size"
    assert chart.stream is None
    assert registry.get_or_create_chart(node, ChartKind.BLOCKS_SIZE) is chart
