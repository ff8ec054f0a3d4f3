"""Metrics sinks that receive chart definitions and per-cycle samples."""

from __future__ import annotations

import threading
from typing import Iterable, Protocol, runtime_checkable

from .logging import get_logger
from .metrics import MetricsStoreProtocol, get_metrics
from .models import ChartDefinition, ChartSample

LOGGER = get_logger(__name__)


@runtime_checkable
class ChartSinkProtocol(Protocol):
    def register_chart(self, chart: ChartDefinition) -> ChartDefinition: ...

    def begin(self, chart: ChartDefinition) -> None: ...

    def set(self, dimension_id: str, value: int | float | None) -> None: ...

    def end(self) -> None: ...


class _PendingUpdate:
    __slots__ = ("chart", "values")

    def __init__(self, chart: ChartDefinition) -> None:
        self.chart = chart
        self.values: dict[str, int | float | None] = {}


class PrometheusChartSink:
    """Publishes chart samples as labelled Prometheus gauges.

    Values set between `begin` and `end` are staged and only written to the
    gauges when `end` is called. Staging is per thread, so collection cycles
    of different nodes running in worker threads never mix their values.
    """

    def __init__(self, metrics: MetricsStoreProtocol | None = None) -> None:
        self._metrics = metrics
        self._lock = threading.Lock()
        self._charts: dict[str, ChartDefinition] = {}
        self._local = threading.local()

    @property
    def metrics(self) -> MetricsStoreProtocol:
        return self._metrics or get_metrics()

    def register_chart(self, chart: ChartDefinition) -> ChartDefinition:
        with self._lock:
            self._charts[chart.id] = chart
            registered = len(self._charts)

        self.metrics.exporter.registered_charts.set(registered)

        LOGGER.debug(
            "Registered chart %s.",
            chart.id,
            extra={"node": chart.node, "chart_id": chart.id, "chart_kind": chart.kind.value},
        )

        return chart

    def get_chart(self, chart_id: str) -> ChartDefinition | None:
        with self._lock:
            return self._charts.get(chart_id)

    def begin(self, chart: ChartDefinition) -> None:
        if getattr(self._local, "pending", None) is not None:
            raise RuntimeError(f"begin({chart.id!r}) called while another chart update is open.")

        if self.get_chart(chart.id) is None:
            raise ValueError(f"Chart {chart.id!r} has not been registered.")

        self._local.pending = _PendingUpdate(chart)

    def set(self, dimension_id: str, value: int | float | None) -> None:
        pending = self._require_pending()

        if dimension_id not in pending.chart.dimension_ids():
            self._local.pending = None
            raise ValueError(f"Chart {pending.chart.id!r} has no dimension {dimension_id!r}.")

        pending.values[dimension_id] = value

    def end(self) -> None:
        pending = self._require_pending()
        self._local.pending = None

        chart = pending.chart
        gauge = self.metrics.charts[chart.kind]

        for dimension_id, value in pending.values.items():
            if value is None:
                continue

            if chart.stream is not None:
                gauge.labels(chart.node, chart.stream, dimension_id).set(value)
            else:
                gauge.labels(chart.node, dimension_id).set(value)

    def _require_pending(self) -> _PendingUpdate:
        pending = getattr(self._local, "pending", None)

        if pending is None:
            raise RuntimeError("No chart update is open; call begin() first.")

        return pending


def publish_samples(sink: ChartSinkProtocol, samples: Iterable[ChartSample]) -> int:
    """Submit samples as begin/set/end sequences and return how many were sent."""

    published = 0

    for sample in samples:
        sink.begin(sample.chart)
        for dimension_id, value in sample.values:
            sink.set(dimension_id, value)
        sink.end()
        published += 1

    return published


__all__ = ["ChartSinkProtocol", "PrometheusChartSink", "publish_samples"]
