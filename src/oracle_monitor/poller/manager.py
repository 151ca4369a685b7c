"""Collector manager: starts one polling task per chain and shuts them down cooperatively."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass

from ..context import ApplicationContext, get_application_context
from ..exceptions import DuplicateRegistrationError
from ..logging import build_log_extra, get_logger
from ..metrics import set_configured_chains
from ..packager import Packager
from . import control as poller_control
from .collect import ChainCollector, build_chain_collector
from .intervals import determine_poll_interval_seconds

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class ManagedCollector:
    collector: ChainCollector
    task: asyncio.Task
    stop_event: asyncio.Event


class CollectorManager:
    """Owns the polling tasks of every started chain collector.

    All chains managed by one instance share the same poll interval so scrape
    freshness is comparable across chains.

    Attributes:
        interval_seconds: Fixed interval override; None resolves it from settings.
    """

    def __init__(self, interval_seconds: float | None = None) -> None:
        self.interval_seconds = interval_seconds
        self._collectors: dict[tuple, ManagedCollector] = {}
        self._lock = threading.Lock()

    def start(
        self,
        packager: Packager,
        *,
        context: ApplicationContext | None = None,
    ) -> asyncio.Task:
        """Build the chain's collector and schedule its polling task.

        Must be called from within a running event loop.

        Raises:
            ConfigError: If the packager describes an unsupported chain.
            DuplicateRegistrationError: If the chain is already running for this
                registry and mode.
        """
        context_obj = context or get_application_context()

        with self._lock:
            existing = self._collectors.get(packager.identity)

            if existing is not None and not existing.task.done():
                raise DuplicateRegistrationError(
                    f"Oracle collector for {packager.chain_name} is already running.",
                    chain=packager.chain_name,
                    config_key="chain_name",
                    context={"mode": packager.mode.value, "package": packager.package},
                )

            collector = build_chain_collector(packager, context_obj)

            interval_seconds = self.interval_seconds or determine_poll_interval_seconds(context_obj.settings)
            stop_event = asyncio.Event()

            task = asyncio.create_task(
                poller_control.poll_chain(
                    collector,
                    interval_seconds=interval_seconds,
                    stop_event=stop_event,
                ),
                name=f"oracle-collector-{packager.chain_name}",
            )

            self._collectors[packager.identity] = ManagedCollector(
                collector=collector,
                task=task,
                stop_event=stop_event,
            )

            set_configured_chains(managed.collector.packager for managed in self._collectors.values())

        LOGGER.info(
            "Started oracle collector for %s.",
            packager.chain_name,
            extra=build_log_extra(
                packager=packager,
                additional={"endpoint_count": len(packager.endpoints.apis)},
            ),
        )

        return task

    def get_collector(self, packager: Packager) -> ChainCollector | None:
        with self._lock:
            managed = self._collectors.get(packager.identity)

        return managed.collector if managed is not None else None

    def get_tasks(self) -> list[asyncio.Task]:
        with self._lock:
            return [managed.task for managed in self._collectors.values()]

    def get_active_task_count(self) -> int:
        """Get the count of active (non-done) polling tasks."""
        with self._lock:
            return sum(1 for managed in self._collectors.values() if not managed.task.done())

    async def shutdown(self, timeout_seconds: float = 10.0) -> None:
        """Stop all collectors, letting in-flight cycles finish within the timeout.

        Collectors still running after the timeout are cancelled.
        """
        with self._lock:
            managed_collectors = list(self._collectors.values())
            self._collectors = {}
            set_configured_chains(())

        running = [managed for managed in managed_collectors if not managed.task.done()]

        if not running:
            return

        LOGGER.debug(
            "Stopping %d oracle collector(s)",
            len(running),
            extra=build_log_extra(additional={"task_count": len(running)}),
        )

        for managed in running:
            managed.stop_event.set()

        tasks = [managed.task for managed in running]
        _done, pending = await asyncio.wait(tasks, timeout=timeout_seconds)

        if pending:
            LOGGER.warning(
                "%d oracle collector(s) did not stop within %s seconds; cancelling.",
                len(pending),
                timeout_seconds,
                extra=build_log_extra(additional={"timeout_seconds": timeout_seconds}),
            )

            for task in pending:
                task.cancel()

            await asyncio.gather(*pending, return_exceptions=True)

        LOGGER.debug(
            "All oracle collectors stopped",
            extra=build_log_extra(additional={"stopped_count": len(running)}),
        )

    def reset(self) -> None:
        """Forget all collectors without stopping them (useful for testing)."""
        with self._lock:
            self._collectors = {}


_collector_manager: CollectorManager | None = None
_manager_lock = threading.Lock()


def get_collector_manager() -> CollectorManager:
    """Get the global CollectorManager instance (singleton pattern)."""
    global _collector_manager

    with _manager_lock:
        if _collector_manager is None:
            _collector_manager = CollectorManager()

        return _collector_manager


def reset_collector_manager() -> None:
    """Reset the global CollectorManager instance (useful for testing)."""
    global _collector_manager

    with _manager_lock:
        if _collector_manager is not None:
            _collector_manager.reset()

        _collector_manager = None


def start(packager: Packager, *, context: ApplicationContext | None = None) -> asyncio.Task:
    """Start the oracle collector for ``packager`` on the global manager.

    Configuration errors propagate to the caller; per-cycle errors never do.
    """
    return get_collector_manager().start(packager, context=context)


__all__ = [
    "CollectorManager",
    "ManagedCollector",
    "get_collector_manager",
    "reset_collector_manager",
    "start",
]
