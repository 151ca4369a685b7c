"""Logging helpers for consistent structured context."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from time import monotonic
from typing import Any, Dict, Iterator

from .packager import Packager

_DEFAULT_LOG_KEYS = set(logging.makeLogRecord({}).__dict__.keys())
_EXCLUDED_EXTRA_KEYS = {"message", "asctime"}
CHAIN_CONTEXT_KEYS = ("chain", "chain_id", "package", "mode")
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
    """Return a module-scoped logger."""

    return logging.getLogger(name)


def extract_log_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Return a dictionary of non-default attributes attached via `extra`."""

    context: Dict[str, Any] = {}

    for key, value in record.__dict__.items():
        if key in _DEFAULT_LOG_KEYS or key in _EXCLUDED_EXTRA_KEYS or key.startswith("_"):
            continue

        context[key] = value

    return context


def build_log_extra(
    *,
    packager: Packager | None = None,
    endpoint: str | None = None,
    error_kind: str | None = None,
    elapsed: float | None = None,
    additional: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """Construct an `extra` dict for structured logging."""
    extra: Dict[str, Any] = {}

    if packager is not None:
        extra["chain"] = packager.chain_name
        extra["chain_id"] = packager.chain_id
        extra["package"] = packager.package
        extra["mode"] = packager.mode.value

    if endpoint is not None:
        extra["endpoint"] = endpoint

    if error_kind is not None:
        extra["error_kind"] = error_kind

    if elapsed is not None:
        extra["elapsed_seconds"] = round(elapsed, 3)

    if additional:
        extra.update(additional)

    return extra


@contextmanager
def log_duration(
    logger: logging.Logger,
    message: str,
    *,
    level: int = logging.DEBUG,
    extra: Dict[str, Any] | None = None,
) -> Iterator[None]:
    """Context manager to log elapsed time for an operation."""

    start = monotonic()
    try:
        yield
    finally:
        elapsed = monotonic() - start
        log_extra = dict(extra or {})
        log_extra["elapsed_seconds"] = round(elapsed, 3)
        logger.log(level, message, extra=log_extra)


class JsonFormatter(logging.Formatter):
    """One JSON object per record; `extra` context becomes top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **extract_log_context(record),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class StructuredTextFormatter(logging.Formatter):
    """Text formatter appending `key=value` context, chain identity first.

    With colors enabled the timestamp and level name are wrapped in ANSI codes.
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        *,
        color_enabled: bool = True,
    ) -> None:
        super().__init__(fmt, datefmt)
        self.color_enabled = color_enabled

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        timestamp = super().formatTime(record, datefmt)

        if not self.color_enabled:
            return timestamp

        return f"{TIMESTAMP_COLOR}{timestamp}{RESET}"

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname) if self.color_enabled else None

        if color:
            record = logging.makeLogRecord(
                {**record.__dict__, "levelname": f"{color}{record.levelname}{RESET}"}
            )

        return super().formatMessage(record)

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = extract_log_context(record)

        if not context:
            return base

        leading = [key for key in CHAIN_CONTEXT_KEYS if key in context]
        trailing = sorted(key for key in context if key not in CHAIN_CONTEXT_KEYS)

        return f"{base} | " + " ".join(f"{key}={context[key]}" for key in leading + trailing)


__all__ = [
    "JsonFormatter",
    "StructuredTextFormatter",
    "build_log_extra",
    "extract_log_context",
    "get_logger",
    "log_duration",
]
