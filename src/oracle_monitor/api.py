"""HTTP API surface for the oracle monitor."""

from __future__ import annotations

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from .health import (
    format_metrics_payload,
    generate_health_report,
    generate_readiness_report,
)
from .metrics import get_fleet_registry


def _health_response(include_details: bool) -> JSONResponse:
    overall_status, status_code, chains = generate_health_report(include_details=include_details)

    return JSONResponse(status_code=status_code, content={"status": overall_status, "chains": chains})


def register_health_routes(app: FastAPI) -> None:
    """Register the health endpoints.

    - GET /health: overall status with one entry per (package, chain, mode)
    - GET /health/details: the same report with last success timestamps
    - GET /health/livez: process liveness, always 200
    - GET /health/readyz: 200 while at least one chain has a recent successful poll, else 503
    """
    @app.get("/health", response_class=JSONResponse)
    async def health() -> JSONResponse:
        return _health_response(include_details=False)

    @app.get("/health/details", response_class=JSONResponse)
    async def health_details() -> JSONResponse:
        return _health_response(include_details=True)

    @app.get("/health/livez", response_class=JSONResponse)
    async def livez() -> JSONResponse:
        return JSONResponse(content={"status": "alive"})

    @app.get("/health/readyz", response_class=JSONResponse)
    async def readyz() -> JSONResponse:
        ready, chains = generate_readiness_report()

        if ready:
            return JSONResponse(content={"status": "ready", "chains": chains})

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "chains": chains},
        )


def resolve_registry(app: FastAPI) -> CollectorRegistry:
    """Return the registry this app exposes, defaulting to the fleet registry."""

    registry = getattr(app.state, "registry", None)

    return registry if registry is not None else get_fleet_registry()


def register_metrics_routes(app: FastAPI) -> None:
    """Register the scrape endpoint.

    Registers:
    - GET /metrics: Prometheus text exposition of the app's registry
    """
    @app.get("/metrics", response_class=Response)
    async def metrics(request: Request) -> Response:
        metric_data = generate_latest(resolve_registry(request.app))
        formatted_payload = format_metrics_payload(metric_data)

        return Response(content=formatted_payload, media_type=CONTENT_TYPE_LATEST)


def register_routes(app: FastAPI) -> None:
    """Register health and metrics routes on a single app."""
    register_health_routes(app)
    register_metrics_routes(app)


__all__ = [
    "register_health_routes",
    "register_metrics_routes",
    "register_routes",
    "resolve_registry",
]
