from __future__ import annotations

from typing import Any, Sequence

import pytest

from multichain_exporter.collector import GETINFO, GETMEMPOOLINFO, LISTSTREAMS, collect
from multichain_exporter.config import NodeConfig
from multichain_exporter.exceptions import TransportError
from multichain_exporter.rpc import RpcResponse


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


def _ok(result: Any) -> RpcResponse:
    return RpcResponse(
        status_code=200,
        status_message="OK",
        headers={},
        body={"result": result, "error": None, "id": 1},
    )


class _ScriptedClient:
    """Replays canned responses (or raises canned errors) per RPC method."""

    def __init__(self, node: NodeConfig, responses: dict[str, RpcResponse | Exception]) -> None:
        self._node = node
        self._responses = responses
        self.methods: list[str] = []

    @property
    def node(self) -> NodeConfig:
        return self._node

    def call(self, method: str, params: Sequence[Any] | None = None) -> RpcResponse:
        self.methods.append(method)
        outcome = self._responses[method]

        if isinstance(outcome, Exception):
            raise outcome

        return outcome

    def close(self) -> None:
        pass


def _default_responses() -> dict[str, RpcResponse | Exception]:
    return {
        GETINFO: _ok({"blocks": 100, "connections": 5, "version": "2.3"}),
        GETMEMPOOLINFO: _ok({"size": 2, "bytes": 512}),
        LISTSTREAMS: _ok(
            [
                {"name": "root", "subscribed": False, "items": 1, "confirmed": 1, "keys": 1},
                {"name": "s1", "subscribed": True, "items": 10, "confirmed": 7, "keys": 3},
            ]
        ),
    }


def test_collect_builds_snapshot_in_call_order() -> None:
    node = _build_node()
    client = _ScriptedClient(node, _default_responses())

    snapshot = collect(node, client)

    assert client.methods == [GETINFO, GETMEMPOOLINFO, LISTSTREAMS]
    assert snapshot is not None
    assert snapshot.blocks == 100
    assert snapshot.connections == 5
    assert snapshot.mem_size == 2
    assert snapshot.mem_bytes == 512
    assert [stream.name for stream in snapshot.streams] == ["root", "s1"]
    assert snapshot.streams[1].subscribed is True
    assert snapshot.streams[1].unconfirmed == 3


def test_collect_stops_after_mempool_failure(caplog: pytest.LogCaptureFixture) -> None:
    node = _build_node()
    responses = _default_responses()
    responses[GETMEMPOOLINFO] = TransportError(
        "boom",
        status_code=-1,
        status_message="Error during call",
        node=node.name,
        method=GETMEMPOOLINFO,
    )
    client = _ScriptedClient(node, responses)

    snapshot = collect(node, client)

    assert snapshot is None
    assert client.methods == [GETINFO, GETMEMPOOLINFO]
    assert any("Collection failed for node local" in message for message in caplog.messages)


def test_collect_returns_none_when_getinfo_fails() -> None:
    node = _build_node()
    responses = _default_responses()
    responses[GETINFO] = TransportError("unauthorized", status_code=401, method=GETINFO)
    client = _ScriptedClient(node, responses)

    assert collect(node, client) is None
    assert client.methods == [GETINFO]


def test_collect_returns_none_on_rpc_error_body() -> None:
    node = _build_node()
    responses = _default_responses()
    responses[LISTSTREAMS] = RpcResponse(
        status_code=200,
        status_message="OK",
        headers={},
        body={"result": None, "error": {"code": -1, "message": "not allowed"}},
    )

    assert collect(node, _ScriptedClient(node, responses)) is None


@pytest.mark.parametrize(
    "liststreams_result",
    [
        {"name": "s1"},
        ["not-a-stream"],
        [{"subscribed": True}],
        [{"name": "s1", "items": "many"}],
        [{"name": "s1", "subscribed": "false"}],
        [{"name": "s1", "subscribed": True, "items": 10.9}],
    ],
)
def test_collect_rejects_malformed_liststreams(liststreams_result: Any) -> None:
    node = _build_node()
    responses = _default_responses()
    responses[LISTSTREAMS] = _ok(liststreams_result)

    assert collect(node, _ScriptedClient(node, responses)) is None


def test_collect_rejects_non_object_getinfo_result() -> None:
    node = _build_node()
    responses = _default_responses()
    responses[GETINFO] = _ok([1, 2, 3])

    assert collect(node, _ScriptedClient(node, responses)) is None


def test_collect_keeps_missing_getinfo_fields_as_none() -> None:
    node = _build_node()
    responses = _default_responses()
    responses[GETINFO] = _ok({"connections": 5})

    snapshot = collect(node, _ScriptedClient(node, responses))

    assert snapshot is not None
    assert snapshot.blocks is None
    assert snapshot.missing_required_fields() == ["blocks"]


@pytest.mark.parametrize(
    ("method", "result"),
    [
        (GETINFO, {"blocks": "n/a", "connections": 5}),
        (GETINFO, {"blocks": 100, "connections": {"in": 2, "out": 3}}),
        (GETINFO, {"blocks": True, "connections": 5}),
        (GETMEMPOOLINFO, {"size": "2", "bytes": 512}),
        (GETMEMPOOLINFO, {"size": 2, "bytes": float("nan")}),
    ],
)
def test_collect_rejects_non_numeric_node_fields(
    method: str,
    result: dict[str, Any],
    caplog: pytest.LogCaptureFixture,
) -> None:
    node = _build_node()
    responses = _default_responses()
    responses[method] = _ok(result)
    client = _ScriptedClient(node, responses)

    assert collect(node, client) is None
    assert LISTSTREAMS not in client.methods
    assert any("must be a number" in message for message in caplog.messages)
