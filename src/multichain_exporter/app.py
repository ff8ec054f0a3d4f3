"""FastAPI application factories and the shared polling lifespan."""

import asyncio
import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from fastapi import FastAPI

from .api import register_health_routes, register_metrics_routes, register_routes
from .config import resolve_config_path
from .context import (
    ApplicationContext,
    create_chart_registry,
    default_rpc_factory,
    get_application_context,
    reset_application_context,
    set_application_context,
)
from .exceptions import ConfigError
from .logging import (
    JsonFormatter,
    StructuredTextFormatter,
    build_log_extra,
    get_logger,
)
from .metrics import (
    MetricsStoreProtocol,
    get_metrics,
    set_configured_nodes,
    set_metrics,
)
from .poller.manager import get_poller_manager
from .runtime_settings import RuntimeSettings
from .settings import AppSettings, get_settings

SETTINGS = get_settings()


UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _formatter_config(settings: AppSettings) -> dict[str, Any]:
    if settings.logging.format == "json":
        return {"()": JsonFormatter, "datefmt": LOG_DATE_FORMAT}

    return {
        "()": StructuredTextFormatter,
        "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        "datefmt": LOG_DATE_FORMAT,
        "color_enabled": settings.logging.color_enabled,
    }


def _configure_logging(settings: AppSettings) -> None:
    """Route root and uvicorn loggers through one structured handler."""

    log_level = settings.logging.level

    if log_level not in logging.getLevelNamesMapping():
        log_level = "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": _formatter_config(settings)},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                }
            },
            "root": {"level": log_level, "handlers": ["default"]},
            "loggers": {
                name: {"handlers": ["default"], "level": log_level, "propagate": False}
                for name in UVICORN_LOGGERS
            },
        }
    )


_configure_logging(SETTINGS)
LOGGER = get_logger(__name__)


APP_TITLE = "MultiChain Prometheus Exporter"
APP_DESCRIPTION = "Exposes MultiChain node statistics as Prometheus metrics."


def _load_context() -> ApplicationContext:
    """Return the application context, falling back to one with no nodes.

    Raises:
        ConfigError: If the configuration file exists but is invalid.
    """

    try:
        return get_application_context()
    except FileNotFoundError:
        pass
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise

    config_path = resolve_config_path(SETTINGS)

    LOGGER.warning(
        "Configuration file not found at %s; no nodes will be polled.",
        config_path,
        extra=build_log_extra(additional={"config_path": str(config_path)}),
    )

    metrics = get_metrics()
    context = ApplicationContext(
        metrics=metrics,
        runtime=RuntimeSettings(app=SETTINGS, raw_config={}, config_path=config_path),
        rpc_factory=default_rpc_factory,
        chart_registry=create_chart_registry(metrics, SETTINGS),
    )
    set_application_context(context)

    return context


async def _stop_polling(app: FastAPI, context: ApplicationContext) -> None:
    manager = get_poller_manager()

    # Only the app that created the tasks tears them down.
    if not manager.should_cleanup(app):
        return

    context.metrics.exporter.up.set(0)

    await manager.shutdown_tasks(timeout_seconds=2.0)

    app.state.polling_tasks.clear()
    manager.reset()

    if getattr(app.state, "context", None) is not None:
        reset_application_context()
        app.state.context = None


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start one polling task per configured node and cancel them on shutdown.

    The health and metrics apps share this lifespan; the first one to start
    hands the ``servers`` entries to the orchestrator and owns the tasks, the
    other reuses them.
    """

    context = _load_context()
    context.metrics.exporter.up.set(1)
    app.state.context = context

    manager = get_poller_manager()

    try:
        polling_tasks = manager.create_tasks(context.runtime.raw_config, context, app)
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise

    if manager.should_cleanup(app):
        set_configured_nodes(manager.nodes)

    app.state.polling_tasks: list[asyncio.Task] = polling_tasks

    try:
        yield
    finally:
        await _stop_polling(app, context)


def _build_app(
    *,
    title: str,
    description: str,
    register: Callable[[FastAPI], None],
    metrics: MetricsStoreProtocol | None,
    context: ApplicationContext | None,
) -> FastAPI:
    """Install optional metrics/context overrides and build an app on the shared lifespan."""

    if metrics is not None:
        set_metrics(metrics)
        reset_application_context()

    if context is not None:
        set_application_context(context)

    app = FastAPI(title=title, description=description, lifespan=_lifespan)
    register(app)

    return app


def create_app(
    *,
    metrics: MetricsStoreProtocol | None = None,
    context: ApplicationContext | None = None,
) -> FastAPI:
    """Create a single app serving both health and metrics routes."""

    return _build_app(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        register=register_routes,
        metrics=metrics,
        context=context,
    )


def create_health_app(
    *,
    metrics: MetricsStoreProtocol | None = None,
    context: ApplicationContext | None = None,
) -> FastAPI:
    return _build_app(
        title=f"{APP_TITLE} - Health",
        description="Health and readiness probes for the MultiChain exporter.",
        register=register_health_routes,
        metrics=metrics,
        context=context,
    )


def create_metrics_app(
    *,
    metrics: MetricsStoreProtocol | None = None,
    context: ApplicationContext | None = None,
) -> FastAPI:
    return _build_app(
        title=f"{APP_TITLE} - Metrics",
        description="Prometheus scrape endpoint for the MultiChain exporter.",
        register=register_metrics_routes,
        metrics=metrics,
        context=context,
    )
