"""Exceptions raised by the MultiChain exporter.

Every error carries a ``context`` dict of structured details (node name,
RPC method, offending config key...) that is appended to ``str(exc)`` and
can be passed straight to ``build_log_extra(additional=...)``.

Hierarchy::

    MultichainExporterError
    ├── RpcError
    │   ├── TransportError
    │   └── ParseError
    ├── CollectionError
    │   └── SnapshotValidationError
    └── ConfigError
        └── ValidationError
"""

from __future__ import annotations

from typing import Any


def _present(**fields: Any) -> dict[str, object]:
    return {key: value for key, value in fields.items() if value not in (None, "", [])}


class MultichainExporterError(Exception):
    """Root of the exporter's exceptions."""

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message

        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} (context: {details})"


class RpcError(MultichainExporterError):
    """A JSON-RPC call to a node did not produce a usable result."""

    def __init__(
        self,
        message: str,
        *,
        node: str | None = None,
        url: str | None = None,
        method: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, context={**_present(node=node, url=url, method=method), **(context or {})})
        self.node = node
        self.url = url
        self.method = method


class TransportError(RpcError):
    """The HTTP exchange failed.

    ``status_code`` is the HTTP status for non-2xx replies and ``-1`` when no
    reply was received at all (refused connection, DNS failure, timeout).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = -1,
        status_message: str = "",
        body: object | None = None,
        node: str | None = None,
        url: str | None = None,
        method: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        details = {"status_code": status_code, **_present(status_message=status_message), **(context or {})}
        super().__init__(message, node=node, url=url, method=method, context=details)
        self.status_code = status_code
        self.status_message = status_message
        self.body = body


class ParseError(RpcError):
    """The node replied, but the body is not a JSON-RPC result we can use."""

    def __init__(
        self,
        message: str,
        *,
        rpc_error: object | None = None,
        node: str | None = None,
        url: str | None = None,
        method: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        details = {**_present(rpc_error=rpc_error), **(context or {})}
        super().__init__(message, node=node, url=url, method=method, context=details)
        self.rpc_error = rpc_error


class CollectionError(MultichainExporterError):
    """Collected node data cannot be turned into charts."""


class SnapshotValidationError(CollectionError):
    """A snapshot is missing ``blocks`` or ``connections``."""

    def __init__(
        self,
        message: str,
        *,
        node: str | None = None,
        missing_fields: list[str] | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        details = {**_present(node=node, missing_fields=missing_fields), **(context or {})}
        super().__init__(message, context=details)
        self.node = node
        self.missing_fields = list(missing_fields or [])


class ConfigError(MultichainExporterError):
    """The configuration file cannot be read or does not have the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        config_file: str | None = None,
        config_section: str | None = None,
        config_key: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        located = _present(config_file=config_file, config_section=config_section, config_key=config_key)
        super().__init__(message, context={**located, **(context or {})})
        self.config_file = config_file
        self.config_section = config_section
        self.config_key = config_key


class ValidationError(ConfigError):
    """A single configuration value has the wrong type or is out of range."""

    def __init__(
        self,
        message: str,
        *,
        value: object | None = None,
        expected_type: str | None = None,
        config_file: str | None = None,
        config_section: str | None = None,
        config_key: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        details = {**_present(value=value, expected_type=expected_type), **(context or {})}
        super().__init__(
            message,
            config_file=config_file,
            config_section=config_section,
            config_key=config_key,
            context=details,
        )
        self.value = value
        self.expected_type = expected_type


__all__ = [
    "CollectionError",
    "ConfigError",
    "MultichainExporterError",
    "ParseError",
    "RpcError",
    "SnapshotValidationError",
    "TransportError",
    "ValidationError",
]
