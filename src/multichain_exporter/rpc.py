"""JSON-RPC client for MultiChain nodes."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

import requests
from requests.adapters import HTTPAdapter

from .config import NodeConfig
from .exceptions import ParseError, TransportError
from .logging import build_log_extra, get_logger
from .metrics import MetricsStoreProtocol, record_rpc_call_duration, record_rpc_error
from .settings import get_settings

LOGGER = get_logger(__name__)

JSONRPC_VERSION = "1.0"
TRANSPORT_ERROR_STATUS = -1
TRANSPORT_ERROR_MESSAGE = "Error during call"


@dataclass(slots=True)
class RpcRequest:
    method: str
    chain_name: str
    id: int = 1
    jsonrpc: str = JSONRPC_VERSION
    params: list[Any] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "chain_name": self.chain_name,
            "id": self.id,
            "jsonrpc": self.jsonrpc,
            "params": self.params,
        }


@dataclass(slots=True)
class RpcResponse:
    """Outcome of one HTTP round-trip.

    ``body`` holds the decoded JSON document, or ``{"error": <message>}``
    when the payload could not be decoded.
    """

    status_code: int
    status_message: str
    headers: dict[str, str]
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code <= 299


@runtime_checkable
class RpcClientProtocol(Protocol):
    @property
    def node(self) -> NodeConfig: ...

    def call(self, method: str, params: Sequence[Any] | None = None) -> RpcResponse: ...

    def close(self) -> None: ...


def categorize_transport_exception(exception: BaseException) -> str:
    """Map a requests exception onto an error type label for metrics."""

    if isinstance(exception, requests.Timeout):
        return "timeout"

    if isinstance(exception, requests.ConnectionError):
        return "connection_error"

    return "transport_error"


def decode_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        return {"error": f"Response body is not valid JSON: {exc}"}


def extract_result(response: RpcResponse, node: NodeConfig, method: str) -> Any:
    """Return ``body["result"]`` or raise `ParseError` when it is unusable."""

    body = response.body

    if not isinstance(body, Mapping):
        raise ParseError(
            f"RPC '{method}' returned a non-object body.",
            node=node.name,
            url=node.url,
            method=method,
            context={"body_type": type(body).__name__},
        )

    rpc_error = body.get("error")

    if rpc_error is not None:
        raise ParseError(
            f"RPC '{method}' returned an error.",
            node=node.name,
            url=node.url,
            method=method,
            rpc_error=rpc_error,
        )

    if "result" not in body:
        raise ParseError(
            f"RPC '{method}' response has no result.",
            node=node.name,
            url=node.url,
            method=method,
        )

    return body["result"]


def create_session() -> requests.Session:
    session = requests.Session()
    # No transport-level retries.
    adapter = HTTPAdapter(max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class RpcClient:
    """Issues single JSON-RPC calls to one configured node."""

    def __init__(
        self,
        node: NodeConfig,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float | None = None,
        metrics: MetricsStoreProtocol | None = None,
    ) -> None:
        self._node = node
        self._session = session or create_session()
        self._timeout_seconds = timeout_seconds or get_settings().poller.rpc_request_timeout_seconds
        self._metrics = metrics

    @property
    def node(self) -> NodeConfig:
        return self._node

    def build_request(self, method: str, params: Sequence[Any] | None = None) -> RpcRequest:
        return RpcRequest(
            method=method,
            chain_name=self._node.chain,
            params=list(params or []),
        )

    def call(self, method: str, params: Sequence[Any] | None = None) -> RpcResponse:
        """POST one request and return the decoded response.

        Raises:
            TransportError: On connection failure, timeout, or a non-2xx status.
        """
        request = self.build_request(method, params)
        data = json.dumps(request.to_payload())

        start_time = time.perf_counter()

        try:
            http_response = self._session.post(
                self._node.url,
                data=data,
                headers={"Content-Type": "application/json"},
                auth=(self._node.username, self._node.password),
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            record_rpc_error(
                self._node,
                method,
                categorize_transport_exception(exc),
                metrics=self._metrics,
            )
            raise TransportError(
                f"RPC '{method}' to {self._node.name} failed: {exc}",
                status_code=TRANSPORT_ERROR_STATUS,
                status_message=TRANSPORT_ERROR_MESSAGE,
                body={"error": str(exc)},
                node=self._node.name,
                url=self._node.url,
                method=method,
                context={"original_exception": type(exc).__name__},
            ) from exc

        response = RpcResponse(
            status_code=http_response.status_code,
            status_message=http_response.reason or "",
            headers=dict(http_response.headers),
            body=decode_body(http_response),
        )

        duration = time.perf_counter() - start_time

        if not response.ok:
            record_rpc_error(self._node, method, "http_status", metrics=self._metrics)
            raise TransportError(
                f"RPC '{method}' to {self._node.name} returned HTTP {response.status_code}.",
                status_code=response.status_code,
                status_message=response.status_message,
                body=response.body,
                node=self._node.name,
                url=self._node.url,
                method=method,
            )

        record_rpc_call_duration(self._node, method, duration, metrics=self._metrics)

        LOGGER.debug(
            "RPC '%s' answered in %.3f seconds.",
            method,
            duration,
            extra=build_log_extra(node=self._node, method=method),
        )

        return response

    def close(self) -> None:
        self._session.close()


__all__ = [
    "JSONRPC_VERSION",
    "RpcClient",
    "RpcClientProtocol",
    "RpcRequest",
    "RpcResponse",
    "categorize_transport_exception",
    "create_session",
    "decode_body",
    "extract_result",
]
