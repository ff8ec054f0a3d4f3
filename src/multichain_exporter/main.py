"""Process entry point serving the health and metrics apps."""

import asyncio
import signal
import sys

import uvicorn
from fastapi import FastAPI

from .app import create_health_app, create_metrics_app
from .settings import get_settings

SETTINGS = get_settings()


def _build_server(app: FastAPI, port: int) -> uvicorn.Server:
    # Logging is already configured by the app module.
    return uvicorn.Server(
        uvicorn.Config(
            app,
            host=SETTINGS.server.host,
            port=port,
            log_config=None,
        )
    )


async def run_servers() -> None:
    """Serve the health and metrics apps side by side until both stop.

    Both apps share one lifespan; whichever starts first owns the polling
    tasks and cancels them on shutdown.
    """
    servers = [
        _build_server(create_health_app(), SETTINGS.server.health_port),
        _build_server(create_metrics_app(), SETTINGS.server.metrics_port),
    ]

    tasks = [asyncio.create_task(server.serve()) for server in servers]

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt(f"Received signal {signum}")


def run() -> None:
    """Run the exporter, exiting with status 0 on SIGTERM or SIGINT."""

    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, _raise_interrupt)

    try:
        asyncio.run(run_servers())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    run()
