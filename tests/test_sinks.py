from __future__ import annotations

import threading

import pytest
from prometheus_client import CollectorRegistry

from multichain_exporter.charts import ChartRegistry
from multichain_exporter.config import NodeConfig
from multichain_exporter.metrics import create_metrics
from multichain_exporter.models import ChartKind, ChartSample
from multichain_exporter.sinks import PrometheusChartSink, publish_samples


def _build_node(name: str = "local") -> NodeConfig:
    return NodeConfig(
        name=name,
        hostname="127.0.0.1",
        port=8570,
        username="multichainrpc",
        password="secret",
        chain="chain1",
        path="/",
        update_every=5,
    )


@pytest.fixture
def metrics():
    return create_metrics(CollectorRegistry())


@pytest.fixture
def registry(metrics) -> ChartRegistry:
    return ChartRegistry(PrometheusChartSink(metrics))


def test_end_commits_values_to_gauges(metrics, registry: ChartRegistry) -> None:
    sink = registry.sink
    chart = registry.get_or_create_chart(_build_node(), ChartKind.STREAM_ITEMS, "s1")

    sink.begin(chart)
    sink.set("confirmed", 7)
    sink.set("unconfirmed", 3)

    assert metrics.registry.get_sample_value(
        "multichain_stream_items",
        {"node": "local", "stream": "s1", "dimension": "confirmed"},
    ) is None

    sink.end()

    assert metrics.registry.get_sample_value(
        "multichain_stream_items",
        {"node": "local", "stream": "s1", "dimension": "confirmed"},
    ) == 7.0
    assert metrics.registry.get_sample_value(
        "multichain_stream_items",
        {"node": "local", "stream": "s1", "dimension": "unconfirmed"},
    ) == 3.0


def test_register_chart_updates_registered_gauge(metrics, registry: ChartRegistry) -> None:
    registry.get_or_create_chart(_build_node(), ChartKind.BLOCKS_COUNT)
    registry.get_or_create_chart(_build_node(), ChartKind.CONNECTIONS)

    assert metrics.registry.get_sample_value("multichain_exporter_registered_charts") == 2.0
    assert registry.sink.get_chart("local.blocks.count") is not None
    assert registry.sink.get_chart("local.connections.count") is not None
    assert registry.sink.get_chart("local.stream.s1.items") is None


def test_begin_rejects_unregistered_chart(metrics) -> None:
    other_registry = ChartRegistry(PrometheusChartSink(metrics))
    chart = other_registry.get_or_create_chart(_build_node(), ChartKind.BLOCKS_COUNT)

    sink = PrometheusChartSink(metrics)

    with pytest.raises(ValueError):
        sink.begin(chart)


def test_begin_rejects_nested_update(registry: ChartRegistry) -> None:
    sink = registry.sink
    blocks = registry.get_or_create_chart(_build_node(), ChartKind.BLOCKS_COUNT)
    connections = registry.get_or_create_chart(_build_node(), ChartKind.CONNECTIONS)

    sink.begin(blocks)

    with pytest.raises(RuntimeError):
        sink.begin(connections)


def test_set_and_end_require_begin(registry: ChartRegistry) -> None:
    sink = registry.sink

    with pytest.raises(RuntimeError):
        sink.set("blocks", 1)

    with pytest.raises(RuntimeError):
        sink.end()


def test_set_rejects_unknown_dimension_and_discards_update(metrics, registry: ChartRegistry) -> None:
    sink = registry.sink
    chart = registry.get_or_create_chart(_build_node(), ChartKind.BLOCKS_COUNT)

    sink.begin(chart)
    sink.set("blocks", 10)

    with pytest.raises(ValueError):
        sink.set("height", 10)

    sink.begin(chart)
    sink.end()

    assert metrics.registry.get_sample_value(
        "multichain_blocks",
        {"node": "local", "dimension": "blocks"},
    ) is None


def test_end_skips_missing_values(metrics, registry: ChartRegistry) -> None:
    chart = registry.get_or_create_chart(_build_node(), ChartKind.BLOCKS_SIZE)

    publish_samples(registry.sink, [ChartSample(chart=chart, values=[("size", 4)])])
    publish_samples(registry.sink, [ChartSample(chart=chart, values=[("size", None)])])

    assert metrics.registry.get_sample_value(
        "multichain_blocks_size_transactions",
        {"node": "local", "dimension": "size"},
    ) == 4.0


def test_publish_samples_counts_charts(metrics, registry: ChartRegistry) -> None:
    node = _build_node()
    samples = [
        ChartSample(chart=registry.get_or_create_chart(node, ChartKind.BLOCKS_COUNT), values=[("blocks", 100)]),
        ChartSample(chart=registry.get_or_create_chart(node, ChartKind.CONNECTIONS), values=[("connections", 5)]),
    ]

    assert publish_samples(registry.sink, samples) == 2
    assert metrics.registry.get_sample_value(
        "multichain_connections",
        {"node": "local", "dimension": "connections"},
    ) == 5.0


def test_updates_are_staged_per_thread(metrics, registry: ChartRegistry) -> None:
    sink = registry.sink
    first = registry.get_or_create_chart(_build_node("a"), ChartKind.BLOCKS_COUNT)
    second = registry.get_or_create_chart(_build_node("b"), ChartKind.BLOCKS_COUNT)

    sink.begin(first)
    sink.set("blocks", 1)

    errors: list[BaseException] = []

    def _other_thread() -> None:
        try:
            publish_samples(sink, [ChartSample(chart=second, values=[("blocks", 2)])])
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    thread = threading.Thread(target=_other_thread)
    thread.start()
    thread.join()

    sink.end()

    assert errors == []
    assert metrics.registry.get_sample_value("multichain_blocks", {"node": "a", "dimension": "blocks"}) == 1.0
    assert metrics.registry.get_sample_value("multichain_blocks", {"node": "b", "dimension": "blocks"}) == 2.0
