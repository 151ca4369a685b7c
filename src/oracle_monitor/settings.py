"""Application settings and environment-driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_ENV_PATH = Path.cwd().joinpath(".env").resolve()

load_dotenv(DEFAULT_ENV_PATH)


def _as_int(value: str | None, default: int) -> int:
    """Convert a string value to an integer, returning default on failure.

    Args:
        value: String value to convert, or None.
        default: Default value to return if conversion fails.

    Returns:
        Converted integer value, or default if conversion fails.
    """
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    """Convert a string value to a float, returning default on failure."""
    if value is None:
        return default

    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    """Convert a string value to a boolean, returning default on failure.

    Recognizes truthy values: "1", "true", "yes", "on" (case-insensitive).
    Recognizes falsy values: "0", "false", "no", "off" (case-insensitive).
    """
    if value is None:
        return default

    normalized = value.strip().lower()

    if normalized in {"1", "true", "yes", "on"}:
        return True

    if normalized in {"0", "false", "no", "off"}:
        return False

    return default


@dataclass(slots=True)
class LoggingSettings:
    level: str
    format: str
    color_enabled: bool


@dataclass(slots=True)
class PollerSettings:
    interval: str
    rest_request_timeout_seconds: float
    rest_max_retries: int
    liveness_timeout_seconds: float
    endpoint_failure_threshold: int
    fetch_max_workers: int
    shutdown_timeout_seconds: float


@dataclass(slots=True)
class HealthSettings:
    readiness_stale_threshold_seconds: int


@dataclass(slots=True)
class AppSettings:
    logging: LoggingSettings
    poller: PollerSettings
    health: HealthSettings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    logging_settings = LoggingSettings(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format=os.getenv("LOG_FORMAT", "text").lower(),
        color_enabled=_as_bool(os.getenv("LOG_COLOR_ENABLED"), True),
    )

    poller_settings = PollerSettings(
        interval=os.getenv("POLL_INTERVAL", "30s"),
        rest_request_timeout_seconds=_as_float(os.getenv("REST_REQUEST_TIMEOUT_SECONDS"), 10.0),
        rest_max_retries=max(_as_int(os.getenv("REST_MAX_RETRIES"), 3), 1),
        liveness_timeout_seconds=_as_float(os.getenv("LIVENESS_TIMEOUT_SECONDS"), 3.0),
        endpoint_failure_threshold=max(_as_int(os.getenv("ENDPOINT_FAILURE_THRESHOLD"), 3), 1),
        fetch_max_workers=max(_as_int(os.getenv("FETCH_MAX_WORKERS"), 8), 1),
        shutdown_timeout_seconds=_as_float(os.getenv("SHUTDOWN_TIMEOUT_SECONDS"), 10.0),
    )

    health_settings = HealthSettings(
        readiness_stale_threshold_seconds=_as_int(
            os.getenv("READINESS_STALE_THRESHOLD_SECONDS"),
            300,
        )
    )

    return AppSettings(
        logging=logging_settings,
        poller=poller_settings,
        health=health_settings,
    )


__all__ = [
    "AppSettings",
    "HealthSettings",
    "LoggingSettings",
    "PollerSettings",
    "get_settings",
]
