"""Scheduler that turns configured nodes into asyncio polling tasks."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Mapping

from fastapi import FastAPI

from ..config import NodeConfig
from ..context import ApplicationContext
from ..logging import build_log_extra, get_logger
from ..orchestrator import configure
from . import control as poller_control

LOGGER = get_logger(__name__)


class PollerManager:
    """Scheduler passed to `configure`; one ``poll-<name>`` task per node.

    The health and metrics apps run the same lifespan. Whichever starts first
    becomes the owner: it configures the nodes and is the only one allowed to
    cancel the tasks. Later callers just get the owner's tasks back.
    """

    def __init__(self) -> None:
        self.started = False
        self.owner: FastAPI | None = None
        self.nodes: list[NodeConfig] = []
        self._tasks: list[asyncio.Task] = []
        self._context: ApplicationContext | None = None
        # Re-entrant: configure() calls schedule() while create_tasks holds it.
        self._lock = threading.RLock()

    def schedule(self, node: NodeConfig) -> None:
        coroutine = poller_control.poll_node(node, context=self._context)

        with self._lock:
            self._tasks.append(asyncio.create_task(coroutine, name=f"poll-{node.name}"))
            self.nodes.append(node)

    def create_tasks(
        self,
        raw_config: Mapping[str, Any],
        context: ApplicationContext,
        app: FastAPI,
    ) -> list[asyncio.Task]:
        """Schedule every valid ``servers`` entry of ``raw_config``, once.

        Returns a copy of the task list; a second call from another app
        returns the tasks created by the first.
        """
        with self._lock:
            if self.started:
                LOGGER.debug(
                    "Polling already started by another app; sharing %d task(s).",
                    len(self._tasks),
                    extra=build_log_extra(additional={"task_count": len(self._tasks)}),
                )
                return list(self._tasks)

            self.started = True
            self.owner = app
            self._context = context

            scheduled = configure(
                raw_config,
                self,
                default_update_every=context.settings.poller.default_update_every,
            )

            LOGGER.info(
                "Polling %d node(s).",
                scheduled,
                extra=build_log_extra(additional={"node_count": scheduled}),
            )

            return list(self._tasks)

    def should_cleanup(self, app: FastAPI) -> bool:
        with self._lock:
            return self.started and self.owner is app

    def active_task_count(self) -> int:
        with self._lock:
            return len([task for task in self._tasks if not task.done()])

    async def shutdown_tasks(self, timeout_seconds: float = 30.0) -> None:
        """Cancel the polling tasks and wait up to ``timeout_seconds`` for them to exit."""

        with self._lock:
            pending, self._tasks = [task for task in self._tasks if not task.done()], []

        if not pending:
            return

        for task in pending:
            task.cancel()

        LOGGER.debug(
            "Cancelled %d polling task(s).",
            len(pending),
            extra=build_log_extra(additional={"task_count": len(pending)}),
        )

        _, still_running = await asyncio.wait(pending, timeout=timeout_seconds)

        if still_running:
            LOGGER.warning(
                "%d polling task(s) still running after %.1f seconds.",
                len(still_running),
                timeout_seconds,
                extra=build_log_extra(additional={"timeout_seconds": timeout_seconds}),
            )

    def reset(self) -> None:
        with self._lock:
            self.started = False
            self.owner = None
            self.nodes = []
            self._tasks = []
            self._context = None


_MANAGER = PollerManager()


def get_poller_manager() -> PollerManager:
    return _MANAGER


def reset_poller_manager() -> None:
    _MANAGER.reset()


__all__ = [
    "PollerManager",
    "get_poller_manager",
    "reset_poller_manager",
]
