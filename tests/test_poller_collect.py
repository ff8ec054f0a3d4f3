from __future__ import annotations

import importlib
from typing import Any, Sequence

import pytest

from multichain_exporter.charts import ChartRegistry
from multichain_exporter.config import NodeConfig
from multichain_exporter.metrics import NODE_HEALTH_STATUS, NODE_LAST_SUCCESS, get_metrics
from multichain_exporter.models import Snapshot, StreamStat
from multichain_exporter.rpc import RpcResponse
from multichain_exporter.sinks import PrometheusChartSink

collect_module = importlib.import_module("multichain_exporter.poller.collect")


def _build_node() -> NodeConfig:
    return NodeConfig(
        name="local",
        hostname="127.0.0.1",
        port=8570,
        username="multichainrpc",
        password="secret",
        chain="chain1",
        path="/",
        update_every=5,
    )


class _NullClient:
    def __init__(self, node: NodeConfig) -> None:
        self._node = node

    @property
    def node(self) -> NodeConfig:
        return self._node

    def call(self, method: str, params: Sequence[Any] | None = None) -> RpcResponse:
        raise AssertionError("collect() is patched in these tests")

    def close(self) -> None:
        pass


def _registry() -> ChartRegistry:
    return ChartRegistry(PrometheusChartSink(get_metrics()))


def test_collect_node_metrics_sync_publishes_charts(monkeypatch: pytest.MonkeyPatch) -> None:
    node = _build_node()
    snapshot = Snapshot(
        blocks=100,
        connections=5,
        mem_size=2,
        mem_bytes=512,
        streams=[StreamStat(name="s1", subscribed=True, items=10, confirmed=7, keys=3)],
    )
    monkeypatch.setattr(collect_module, "collect", lambda _node, _client: snapshot)

    registry = _registry()

    assert collect_module.collect_node_metrics_sync(node, _NullClient(node), registry) is True

    metrics = get_metrics()
    sample = metrics.registry.get_sample_value

    assert sample("multichain_stream_items", {"node": "local", "stream": "s1", "dimension": "confirmed"}) == 7.0
    assert sample("multichain_stream_items", {"node": "local", "stream": "s1", "dimension": "unconfirmed"}) == 3.0
    assert sample("multichain_stream_keys", {"node": "local", "stream": "s1", "dimension": "keys"}) == 3.0
    assert sample("multichain_blocks_size_transactions", {"node": "local", "dimension": "size"}) == 2.0
    assert sample("multichain_blocks_memory_bytes", {"node": "local", "dimension": "memory"}) == 512.0
    assert sample("multichain_blocks", {"node": "local", "dimension": "blocks"}) == 100.0
    assert sample("multichain_connections", {"node": "local", "dimension": "connections"}) == 5.0
    assert sample("multichain_poll_success", {"node": "local", "chain": "chain1"}) == 1.0
    assert NODE_HEALTH_STATUS[("local", "chain1")] is True
    assert ("local", "chain1") in NODE_LAST_SUCCESS


def test_collect_node_metrics_sync_records_failure_when_collection_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    node = _build_node()
    monkeypatch.setattr(collect_module, "collect", lambda _node, _client: None)

    registry = _registry()

    assert collect_module.collect_node_metrics_sync(node, _NullClient(node), registry) is False
    assert len(registry) == 0
    assert get_metrics().registry.get_sample_value(
        "multichain_poll_success",
        {"node": "local", "chain": "chain1"},
    ) == 0.0
    assert NODE_HEALTH_STATUS[("local", "chain1")] is False


def test_collect_node_metrics_sync_skips_mapper_for_invalid_snapshot(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    node = _build_node()
    mapper_calls: list[Any] = []

    monkeypatch.setattr(collect_module, "collect", lambda _node, _client: Snapshot(connections=3))
    monkeypatch.setattr(collect_module, "map_to_charts", lambda *args: mapper_calls.append(args) or [])

    assert collect_module.collect_node_metrics_sync(node, _NullClient(node), _registry()) is False
    assert mapper_calls == []
    assert any("Ignoring snapshot for node local" in message for message in caplog.messages)


def test_failed_cycle_keeps_previous_chart_values(monkeypatch: pytest.MonkeyPatch) -> None:
    node = _build_node()
    registry = _registry()

    monkeypatch.setattr(collect_module, "collect", lambda _node, _client: Snapshot(blocks=10, connections=2))
    collect_module.collect_node_metrics_sync(node, _NullClient(node), registry)

    monkeypatch.setattr(collect_module, "collect", lambda _node, _client: None)
    collect_module.collect_node_metrics_sync(node, _NullClient(node), registry)

    assert get_metrics().registry.get_sample_value(
        "multichain_blocks",
        {"node": "local", "dimension": "blocks"},
    ) == 10.0


class _ScriptedClient(_NullClient):
    def __init__(self, node: NodeConfig, results: dict[str, Any]) -> None:
        super().__init__(node)
        self._results = results

    def call(self, method: str, params: Sequence[Any] | None = None) -> RpcResponse:
        return RpcResponse(
            status_code=200,
            status_message="OK",
            headers={},
            body={"result": self._results[method], "error": None, "id": 1},
        )


def test_collect_node_metrics_sync_end_to_end() -> None:
    node = _build_node()
    client = _ScriptedClient(
        node,
        {
            "getinfo": {"blocks": 100, "connections": 5},
            "getmempoolinfo": {"size": 2, "bytes": 512},
            "liststreams": [{"name": "s1", "subscribed": True, "items": 10, "confirmed": 7, "keys": 3}],
        },
    )
    registry = _registry()

    assert collect_module.collect_node_metrics_sync(node, client, registry) is True

    assert len(registry) == 6
    assert get_metrics().registry.get_sample_value(
        "multichain_stream_items",
        {"node": "local", "stream": "s1", "dimension": "unconfirmed"},
    ) == 3.0


def test_non_numeric_getinfo_field_skips_the_whole_cycle() -> None:
    node = _build_node()
    client = _ScriptedClient(
        node,
        {
            "getinfo": {"blocks": "n/a", "connections": 5},
            "getmempoolinfo": {"size": 2, "bytes": 512},
            "liststreams": [{"name": "s1", "subscribed": True, "items": 10, "confirmed": 7, "keys": 3}],
        },
    )
    registry = _registry()

    assert collect_module.collect_node_metrics_sync(node, client, registry) is False

    sample = get_metrics().registry.get_sample_value

    assert len(registry) == 0
    assert sample("multichain_stream_items", {"node": "local", "stream": "s1", "dimension": "confirmed"}) is None
    assert sample("multichain_blocks_size_transactions", {"node": "local", "dimension": "size"}) is None
    assert sample("multichain_connections", {"node": "local", "dimension": "connections"}) is None
    assert sample("multichain_poll_success", {"node": "local", "chain": "chain1"}) == 0.0
