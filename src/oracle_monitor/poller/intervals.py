"""Utilities for resolving the poll interval."""

from __future__ import annotations

import re

from ..logging import get_logger
from ..settings import AppSettings, get_settings

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

DEFAULT_POLL_INTERVAL = SETTINGS.poller.interval
POLL_INTERVAL_PATTERN = re.compile(r"^\s*(\d+)\s*([smhSMH]?)\s*$")


def parse_duration_to_seconds(value: str) -> int | None:
    """Parse a duration string (e.g., '30s', '1m', '1h') to seconds.

    Supports formats: 'N', 'Ns', 'Nm', 'Nh' where N is a non-negative integer.
    Case-insensitive for unit letters.

    Args:
        value: Duration string to parse.

    Returns:
        Duration in seconds, or None if parsing fails.
    """
    match = POLL_INTERVAL_PATTERN.match(value)

    if not match:
        return None

    amount = int(match.group(1))

    unit = match.group(2).lower() or "s"

    unit_multipliers = {"s": 1, "m": 60, "h": 3600}

    multiplier = unit_multipliers.get(unit)

    if multiplier is None:
        return None

    return amount * multiplier


# Parse the default poll interval to seconds, with a fallback of 30 seconds.
DEFAULT_POLL_INTERVAL_SECONDS = (
    parse_duration_to_seconds(DEFAULT_POLL_INTERVAL) if DEFAULT_POLL_INTERVAL else None
) or 30


def determine_poll_interval_seconds(settings: AppSettings | None = None) -> int:
    """Return the poll interval shared by every chain collector.

    Falls back to the default when the configured value is invalid or not positive.
    """
    resolved_settings = settings or SETTINGS
    raw_value = resolved_settings.poller.interval or DEFAULT_POLL_INTERVAL

    resolved_seconds = parse_duration_to_seconds(raw_value)

    if resolved_seconds is None or resolved_seconds <= 0:
        LOGGER.warning(
            "Invalid POLL_INTERVAL '%s'. Falling back to %s seconds.",
            raw_value,
            DEFAULT_POLL_INTERVAL_SECONDS,
        )

        return DEFAULT_POLL_INTERVAL_SECONDS

    return resolved_seconds


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "determine_poll_interval_seconds",
    "parse_duration_to_seconds",
]
