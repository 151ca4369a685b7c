"""Polling package for oracle metrics."""

from .collect import ChainCollector, build_chain_collector
from .control import collect_oracle_metrics, poll_chain
from .intervals import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    determine_poll_interval_seconds,
)
from .manager import CollectorManager, get_collector_manager, reset_collector_manager, start

__all__ = [
    "ChainCollector",
    "CollectorManager",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "build_chain_collector",
    "collect_oracle_metrics",
    "determine_poll_interval_seconds",
    "get_collector_manager",
    "poll_chain",
    "reset_collector_manager",
    "start",
]
