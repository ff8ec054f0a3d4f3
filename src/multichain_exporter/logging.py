"""Structured logging helpers shared by every exporter module."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from time import monotonic
from typing import TYPE_CHECKING, Any, Dict, Iterator

if TYPE_CHECKING:
    from .config import NodeConfig

_RESERVED_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "color_message",
}

LEVEL_COLORS = {
    "DEBUG": "\033[90m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
TIMESTAMP_COLOR = "\033[36m"
RESET = "\033[0m"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def extract_log_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the attributes attached to ``record`` through ``extra``."""

    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_KEYS and not key.startswith("_")
    }


def build_log_extra(
    *,
    node: NodeConfig | None = None,
    method: str | None = None,
    stream: str | None = None,
    elapsed: float | None = None,
    additional: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a node-scoped log call.

    The endpoint is reported as ``hostname:port``; usernames and passwords
    never reach the log output.
    """
    extra: Dict[str, Any] = {}

    if node is not None:
        extra.update(
            node=node.name,
            chain=node.chain,
            endpoint=f"{node.hostname}:{node.port}",
        )

    if method is not None:
        extra["rpc_method"] = method

    if stream is not None:
        extra["stream"] = stream

    if elapsed is not None:
        extra["elapsed_seconds"] = round(elapsed, 3)

    extra.update(additional or {})

    return extra


@contextmanager
def log_duration(
    logger: logging.Logger,
    message: str,
    *,
    level: int = logging.DEBUG,
    extra: Dict[str, Any] | None = None,
) -> Iterator[None]:
    """Log ``message`` with ``elapsed_seconds`` once the block exits."""

    started = monotonic()
    try:
        yield
    finally:
        logger.log(
            level,
            message,
            extra={**(extra or {}), "elapsed_seconds": round(monotonic() - started, 3)},
        )


def resolve_color_message(record: logging.LogRecord, color_message: str | None) -> str | None:
    """Interpolate uvicorn's ``color_message`` with the record arguments."""

    if not color_message or not record.args:
        return color_message

    try:
        return color_message % record.args
    except (TypeError, ValueError):
        return color_message


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        color_message = getattr(record, "color_message", None)
        if color_message is not None:
            payload["color_message"] = resolve_color_message(record, color_message)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            payload["stack_info"] = record.stack_info

        payload.update(extract_log_context(record))

        return json.dumps(payload, default=str)


class StructuredTextFormatter(logging.Formatter):
    """Plain text lines followed by `` | key=value`` pairs from ``extra``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        *,
        color_enabled: bool = True,
    ) -> None:
        super().__init__(fmt, datefmt, style)
        self.color_enabled = color_enabled

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)

        if self.color_enabled:
            line = self._colorize(record, line)

        context = extract_log_context(record)

        if not context:
            return line

        pairs = " ".join(f"{key}={context[key]}" for key in sorted(context))
        return f"{line} | {pairs}"

    def _colorize(self, record: logging.LogRecord, line: str) -> str:
        color_message = resolve_color_message(record, getattr(record, "color_message", None))

        if color_message:
            plain_message = record.getMessage()
            if plain_message in line:
                line = line.replace(plain_message, color_message, 1)
            else:
                line = f"{line} {color_message}"

        timestamp = self.formatTime(record, self.datefmt)
        line = line.replace(timestamp, f"{TIMESTAMP_COLOR}{timestamp}{RESET}", 1)

        level_color = getattr(record, "levelcolor", "") or LEVEL_COLORS.get(record.levelname, "")
        if level_color:
            line = line.replace(record.levelname, f"{level_color}{record.levelname}{RESET}", 1)

        return line


__all__ = [
    "JsonFormatter",
    "StructuredTextFormatter",
    "build_log_extra",
    "extract_log_context",
    "get_logger",
    "log_duration",
    "resolve_color_message",
]
