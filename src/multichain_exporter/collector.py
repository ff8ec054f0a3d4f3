"""Sequential statistics collection for a single node."""

from __future__ import annotations

import math
from typing import Any, Mapping

from .config import NodeConfig
from .exceptions import ParseError, RpcError
from .logging import build_log_extra, get_logger
from .models import Snapshot, StreamStat
from .rpc import RpcClientProtocol, extract_result

LOGGER = get_logger(__name__)

GETINFO = "getinfo"
GETMEMPOOLINFO = "getmempoolinfo"
LISTSTREAMS = "liststreams"


def collect(node: NodeConfig, rpc_client: RpcClientProtocol) -> Snapshot | None:
    """Gather one snapshot from ``getinfo``, ``getmempoolinfo`` and ``liststreams``.

    The calls run strictly in order and each one only starts once the previous
    one succeeded. Any failure is logged and ``None`` is returned, so a
    partially filled snapshot never leaves this function.
    """

    snapshot = Snapshot()

    try:
        info = _result_mapping(node, rpc_client, GETINFO)
        snapshot.blocks = _number(node, GETINFO, info, "blocks")
        snapshot.connections = _number(node, GETINFO, info, "connections")

        mempool = _result_mapping(node, rpc_client, GETMEMPOOLINFO)
        snapshot.mem_size = _number(node, GETMEMPOOLINFO, mempool, "size")
        snapshot.mem_bytes = _number(node, GETMEMPOOLINFO, mempool, "bytes")

        snapshot.streams = _fetch_streams(node, rpc_client)
    except RpcError as exc:
        LOGGER.warning(
            "Collection failed for node %s: %s",
            node.name,
            exc,
            extra=build_log_extra(node=node, method=exc.method, additional=exc.context),
        )
        return None

    return snapshot


def _result_mapping(node: NodeConfig, rpc_client: RpcClientProtocol, method: str) -> Mapping[str, Any]:
    result = extract_result(rpc_client.call(method), node, method)

    if not isinstance(result, Mapping):
        raise ParseError(
            f"RPC '{method}' result must be an object.",
            node=node.name,
            url=node.url,
            method=method,
            context={"result_type": type(result).__name__},
        )

    return result


def _number(node: NodeConfig, method: str, result: Mapping[str, Any], key: str) -> int | float | None:
    """Return ``result[key]``, ``None`` when absent; anything but a finite number is a `ParseError`."""

    value = result.get(key)

    if value is None:
        return None

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _bad_number(node, method, key, value)

    if isinstance(value, float) and not math.isfinite(value):
        raise _bad_number(node, method, key, value)

    return value


def _bad_number(node: NodeConfig, method: str, key: str, value: Any) -> ParseError:
    return ParseError(
        f"RPC '{method}' field '{key}' must be a number.",
        node=node.name,
        url=node.url,
        method=method,
        context={"field": key, "value_type": type(value).__name__},
    )


def _fetch_streams(node: NodeConfig, rpc_client: RpcClientProtocol) -> list[StreamStat]:
    result = extract_result(rpc_client.call(LISTSTREAMS), node, LISTSTREAMS)

    if not isinstance(result, list):
        raise ParseError(
            f"RPC '{LISTSTREAMS}' result must be an array.",
            node=node.name,
            url=node.url,
            method=LISTSTREAMS,
            context={"result_type": type(result).__name__},
        )

    streams: list[StreamStat] = []

    for entry in result:
        try:
            streams.append(StreamStat.from_rpc(entry))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ParseError(
                f"RPC '{LISTSTREAMS}' returned a malformed stream entry.",
                node=node.name,
                url=node.url,
                method=LISTSTREAMS,
                context={"entry": entry},
            ) from exc

    return streams


__all__ = ["GETINFO", "GETMEMPOOLINFO", "LISTSTREAMS", "collect"]
