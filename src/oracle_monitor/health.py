"""Health reporting and metrics formatting helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Tuple

from fastapi import status

from .metrics import CHAIN_HEALTH_STATUS, CHAIN_LAST_SUCCESS, CONFIGURED_CHAINS
from .settings import get_settings

SETTINGS = get_settings()
READINESS_STALE_THRESHOLD_SECONDS = SETTINGS.health.readiness_stale_threshold_seconds


def generate_health_report(
    include_details: bool = False,
) -> Tuple[str, int, List[Dict[str, str]]]:
    if not CONFIGURED_CHAINS:
        return (
            "ok",
            status.HTTP_200_OK,
            [],
        )

    if not CHAIN_HEALTH_STATUS:
        return (
            "initializing",
            status.HTTP_503_SERVICE_UNAVAILABLE,
            [],
        )

    any_success = any(CHAIN_HEALTH_STATUS.values())
    all_success = all(CHAIN_HEALTH_STATUS.values())

    if all_success:
        overall_status = "ok"
        status_code = status.HTTP_200_OK
    elif any_success:
        overall_status = "degraded"
        status_code = status.HTTP_200_OK
    else:
        overall_status = "unhealthy"
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    chain_details: List[Dict[str, str]] = []

    for (package, chain, mode), healthy in sorted(CHAIN_HEALTH_STATUS.items()):
        entry: Dict[str, str] = {
            "chain": chain,
            "package": package,
            "mode": mode,
            "status": "ok" if healthy else "unhealthy",
        }

        if include_details:
            last_success = CHAIN_LAST_SUCCESS.get((package, chain, mode))

            if last_success is not None:
                entry["last_success_timestamp"] = _format_timestamp(last_success)

        chain_details.append(entry)

    return overall_status, status_code, chain_details


def generate_readiness_report() -> Tuple[bool, List[Dict[str, str]]]:
    """Report readiness: at least one chain polled successfully within the stale threshold."""

    if not CONFIGURED_CHAINS:
        return True, []

    if not CHAIN_HEALTH_STATUS:
        return False, []

    threshold = time.time() - READINESS_STALE_THRESHOLD_SECONDS

    any_ready = False
    chain_entries: List[Dict[str, str]] = []

    for key, healthy in sorted(CHAIN_HEALTH_STATUS.items()):
        package, chain, mode = key
        last_success = CHAIN_LAST_SUCCESS.get(key)

        is_recent = last_success is not None and last_success >= threshold
        ready = healthy and is_recent

        if ready:
            any_ready = True

        entry: Dict[str, str] = {
            "chain": chain,
            "package": package,
            "mode": mode,
            "status": "ready" if ready else "not_ready",
        }

        if last_success is not None:
            entry["last_success_timestamp"] = _format_timestamp(last_success)

        chain_entries.append(entry)

    return any_ready, chain_entries


def _format_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def format_metrics_payload(payload: bytes) -> bytes:
    """Rewrite sample values in scientific notation as plain decimals."""

    text = payload.decode()

    lines = []

    for line in text.splitlines():
        if not line or line.startswith("#"):
            lines.append(line)

            continue

        parts = line.rsplit(" ", 1)

        if len(parts) != 2:
            lines.append(line)

            continue

        metric, value = parts

        if "e" in value.lower() and value.lower() not in {"+inf", "-inf", "nan"}:
            try:
                value = format(Decimal(value), "f")
            except InvalidOperation:
                pass

        lines.append(f"{metric} {value}")

    return ("\n".join(lines) + "\n").encode()


__all__ = [
    "READINESS_STALE_THRESHOLD_SECONDS",
    "format_metrics_payload",
    "generate_health_report",
    "generate_readiness_report",
]
