from __future__ import annotations

import pytest

from oracle_monitor.poller.intervals import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    determine_poll_interval_seconds,
    parse_duration_to_seconds,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("15s", 15),
        ("2m", 120),
        ("1h", 3600),
        ("30", 30),
        (" 5 m ", 300),
        ("3S", 3),
    ],
)
def test_parse_duration_to_seconds_parses_units(value: str, expected: int) -> None:
    result = parse_duration_to_seconds(value)

    assert result == expected


@pytest.mark.parametrize(
    "value",
    ["", "abc", "5x", "10 d", "-5s"],
)
def test_parse_duration_to_seconds_returns_none_on_invalid(value: str) -> None:
    result = parse_duration_to_seconds(value)

    assert result is None


def test_determine_poll_interval_seconds_uses_settings(settings_factory) -> None:
    seconds = determine_poll_interval_seconds(settings_factory(interval="2m"))

    assert seconds == 120


@pytest.mark.parametrize("interval", ["not-a-duration", "0s"])
def test_determine_poll_interval_seconds_falls_back_on_invalid(
    interval: str,
    settings_factory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    seconds = determine_poll_interval_seconds(settings_factory(interval=interval))

    assert seconds == DEFAULT_POLL_INTERVAL_SECONDS
    assert any(f"Invalid POLL_INTERVAL '{interval}'" in message for message in caplog.messages)
