import logging
import logging.config
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from .api import register_health_routes, register_metrics_routes, register_routes
from .context import ApplicationContext, get_application_context
from .logging import (
    JsonFormatter,
    StructuredTextFormatter,
    build_log_extra,
    get_logger,
)
from .packager import Packager
from .poller.manager import CollectorManager, get_collector_manager
from .settings import AppSettings, get_settings

SETTINGS = get_settings()


def _configure_logging(settings: AppSettings) -> None:
    """Configure logging based on application settings."""
    log_level = settings.logging.level
    log_format = settings.logging.format

    if log_level not in logging._nameToLevel:
        log_level = "INFO"

    if log_format == "json":
        formatter_config = {
            "()": JsonFormatter,
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
        }
    else:
        formatter_config = {
            "()": StructuredTextFormatter,
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            "color_enabled": settings.logging.color_enabled,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": formatter_config},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                }
            },
            "root": {"level": log_level, "handlers": ["default"]},
        }
    )


_configure_logging(SETTINGS)
LOGGER = get_logger(__name__)


APP_TITLE = "Validator Oracle Monitor"
APP_DESCRIPTION = "Exposes Prometheus metrics for Cosmos oracle module participation."


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start one collector per configured packager and stop them on shutdown.

    A configuration error raised while starting any collector shuts down the
    ones already started and aborts startup.
    On shutdown every collector is asked to stop; collectors still running
    after the configured timeout are cancelled.
    """
    manager: CollectorManager = app.state.manager
    context: ApplicationContext = app.state.context or get_application_context()
    packagers: tuple[Packager, ...] = app.state.packagers

    try:
        for packager in packagers:
            manager.start(packager, context=context)

        LOGGER.info(
            "Started %d oracle collector(s).",
            len(packagers),
            extra=build_log_extra(additional={"collector_count": len(packagers)}),
        )

        yield
    finally:
        await manager.shutdown(
            timeout_seconds=context.settings.poller.shutdown_timeout_seconds
        )


def _build_app(
    title: str,
    description: str,
    *,
    packagers: Iterable[Packager],
    registry: CollectorRegistry | None,
    manager: CollectorManager | None,
    context: ApplicationContext | None,
) -> FastAPI:
    app = FastAPI(
        title=title,
        description=description,
        lifespan=_lifespan,
    )

    app.state.packagers = tuple(packagers)
    app.state.registry = registry
    app.state.manager = manager or get_collector_manager()
    app.state.context = context

    return app


def create_app(
    packagers: Iterable[Packager] = (),
    *,
    registry: CollectorRegistry | None = None,
    manager: CollectorManager | None = None,
    context: ApplicationContext | None = None,
) -> FastAPI:
    """Create a FastAPI instance serving metrics and health for the given collectors.

    Args:
        packagers: Chains whose collectors start with the app.
        registry: Registry exposed on /metrics (defaults to the fleet registry).
        manager: Collector manager owning the polling tasks (defaults to the global one).
        context: Optional application context for dependency injection.

    Returns:
        FastAPI application instance with all routes registered.
    """
    app = _build_app(
        APP_TITLE,
        APP_DESCRIPTION,
        packagers=packagers,
        registry=registry,
        manager=manager,
        context=context,
    )

    register_routes(app)

    return app


def create_health_app(
    packagers: Iterable[Packager] = (),
    *,
    manager: CollectorManager | None = None,
    context: ApplicationContext | None = None,
) -> FastAPI:
    """Create a FastAPI instance for health endpoints only.

    Collectors for ``packagers`` start with this app.
    """
    app = _build_app(
        f"{APP_TITLE} - Health",
        "Health check endpoints for the oracle monitor.",
        packagers=packagers,
        registry=None,
        manager=manager,
        context=context,
    )

    register_health_routes(app)

    return app


def create_metrics_app(
    *,
    registry: CollectorRegistry | None = None,
) -> FastAPI:
    """Create a FastAPI instance exposing a registry on /metrics only.

    Note:
        This app starts no collectors; pair it with an app that does.
    """
    app = _build_app(
        f"{APP_TITLE} - Metrics",
        "Prometheus metrics endpoint for the oracle monitor.",
        packagers=(),
        registry=registry,
        manager=CollectorManager(),
        context=None,
    )

    register_metrics_routes(app)

    return app
