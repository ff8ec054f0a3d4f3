"""Process-wide wiring: metrics bundle, chart registry, runtime settings and RPC client factory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .charts import ChartRegistry
from .config import NodeConfig
from .metrics import MetricsStoreProtocol, get_metrics
from .rpc import RpcClient, RpcClientProtocol
from .runtime_settings import RuntimeSettings, get_runtime_settings
from .settings import AppSettings
from .sinks import ChartSinkProtocol, PrometheusChartSink

RpcFactory = Callable[[NodeConfig], RpcClientProtocol]


@dataclass(slots=True)
class ApplicationContext:
    """Everything a polling task needs to collect a node and publish its charts."""

    metrics: MetricsStoreProtocol

    runtime: RuntimeSettings

    rpc_factory: RpcFactory

    chart_registry: ChartRegistry

    def create_rpc_client(self, node: NodeConfig) -> RpcClientProtocol:
        return self.rpc_factory(node)

    @property
    def settings(self) -> AppSettings:
        return self.runtime.app

    @property
    def sink(self) -> ChartSinkProtocol:
        """Sink the chart registry registers with and samples are published to."""

        return self.chart_registry.sink


def default_rpc_factory(node: NodeConfig) -> RpcClientProtocol:
    """One `RpcClient`, with its own `requests` session, per node."""

    return RpcClient(node)


def create_chart_registry(
    metrics: MetricsStoreProtocol,
    settings: AppSettings,
) -> ChartRegistry:
    sink = PrometheusChartSink(metrics)

    return ChartRegistry(sink, base_priority=settings.charts.base_priority)


def create_default_context() -> ApplicationContext:
    """Wire a context from the configuration file and the shared metrics bundle.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigError: If the configuration file cannot be parsed.
    """

    runtime = get_runtime_settings()
    metrics = get_metrics()
    registry = create_chart_registry(metrics, runtime.app)

    return ApplicationContext(
        metrics=metrics,
        runtime=runtime,
        rpc_factory=default_rpc_factory,
        chart_registry=registry,
    )


_CURRENT_CONTEXT: ApplicationContext | None = None


def get_application_context() -> ApplicationContext:
    """Return the installed context, building the default one on first use."""

    if _CURRENT_CONTEXT is None:
        set_application_context(create_default_context())

    assert _CURRENT_CONTEXT is not None
    return _CURRENT_CONTEXT


def set_application_context(context: ApplicationContext | None) -> None:
    global _CURRENT_CONTEXT

    _CURRENT_CONTEXT = context


def reset_application_context() -> None:
    set_application_context(None)


__all__ = [
    "ApplicationContext",
    "RpcFactory",
    "create_chart_registry",
    "create_default_context",
    "default_rpc_factory",
    "get_application_context",
    "reset_application_context",
    "set_application_context",
]
