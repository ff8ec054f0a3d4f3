"""FastAPI route registration for the health and metrics ports."""

from __future__ import annotations

from typing import List

from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .health import (
    NodeEntry,
    format_metrics_payload,
    generate_health_report,
    generate_readiness_report,
)
from .metrics import get_metrics


def _status_response(status_code: int, overall_status: str, nodes: List[NodeEntry]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": overall_status, "nodes": nodes},
    )


def register_health_routes(app: FastAPI) -> None:
    """Attach ``/health``, ``/health/details``, ``/health/livez`` and ``/health/readyz``."""

    @app.get("/health", response_class=JSONResponse)
    async def health() -> JSONResponse:
        overall_status, status_code, nodes = generate_health_report()
        return _status_response(status_code, overall_status, nodes)

    @app.get("/health/details", response_class=JSONResponse)
    async def health_details() -> JSONResponse:
        overall_status, status_code, nodes = generate_health_report(include_details=True)
        return _status_response(status_code, overall_status, nodes)

    @app.get("/health/livez", response_class=JSONResponse)
    async def livez() -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "alive"})

    @app.get("/health/readyz", response_class=JSONResponse)
    async def readyz() -> JSONResponse:
        ready, nodes = generate_readiness_report()

        if ready:
            return _status_response(status.HTTP_200_OK, "ready", nodes)

        return _status_response(status.HTTP_503_SERVICE_UNAVAILABLE, "not_ready", nodes)


def register_metrics_routes(app: FastAPI) -> None:
    """Attach the Prometheus scrape endpoint ``/metrics``."""

    @app.get("/metrics", response_class=Response)
    async def metrics() -> Response:
        payload = format_metrics_payload(generate_latest(get_metrics().registry))
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


def register_routes(app: FastAPI) -> None:
    register_health_routes(app)
    register_metrics_routes(app)


__all__ = [
    "register_health_routes",
    "register_metrics_routes",
    "register_routes",
]
