"""Async control loop for oracle polling."""

from __future__ import annotations

import asyncio
import logging
import time

from ..exceptions import FetchError, NoHealthyEndpointError
from ..logging import build_log_extra, log_duration
from ..metrics import record_poll_failure, record_poll_success, update_metrics
from .collect import ChainCollector


async def poll_chain(
    collector: ChainCollector,
    *,
    interval_seconds: float,
    stop_event: asyncio.Event,
) -> None:
    """Run poll cycles for one chain until stop is requested or the task is cancelled.

    Each cycle selects an endpoint, fetches the oracle state and updates the
    chain's metrics, then waits out the rest of the interval. Per-cycle
    failures are logged and never end the loop.

    Args:
        collector: The chain collector owning endpoint state and metrics.
        interval_seconds: Interval between cycle starts.
        stop_event: Set to stop accepting new cycles.
    """
    packager = collector.packager
    logger = collector.logger

    logger.info(
        "Polling oracle state for %s every %s seconds.",
        packager.chain_name,
        interval_seconds,
        extra=build_log_extra(packager=packager),
    )

    while not stop_event.is_set():
        start_time = time.monotonic()

        try:
            with log_duration(
                logger,
                "oracle_poll_iteration",
                level=logging.DEBUG,
                extra=build_log_extra(packager=packager),
            ):
                await collect_oracle_metrics(collector)
        except asyncio.CancelledError:
            logger.debug(
                "Polling task for %s cancelled.",
                packager.chain_name,
                extra=build_log_extra(packager=packager),
            )
            raise
        except Exception as exc:  # noqa: BLE001
            # Unexpected errors skip the cycle; the loop keeps running.
            logger.exception(
                "Unexpected error while polling %s.",
                packager.chain_name,
                exc_info=exc,
                extra=build_log_extra(packager=packager, error_kind="unexpected"),
            )
            record_poll_failure(packager)

        elapsed = time.monotonic() - start_time
        sleep_duration = max(interval_seconds - elapsed, 0)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=sleep_duration)
        except asyncio.TimeoutError:
            pass

    logger.info(
        "Stopped polling oracle state for %s.",
        packager.chain_name,
        extra=build_log_extra(packager=packager),
    )


async def collect_oracle_metrics(collector: ChainCollector) -> bool:
    """Execute one select, fetch and update cycle.

    Selection and fetching run in a worker thread; the metric update runs on
    the event loop once the fetch has fully succeeded.

    Returns:
        True if the metrics were updated, False if the cycle was skipped.
    """
    packager = collector.packager
    logger = collector.logger

    try:
        snapshot = await asyncio.to_thread(collector.collect_snapshot_sync)
    except NoHealthyEndpointError as exc:
        logger.warning(
            "No healthy API endpoint for %s; skipping cycle.",
            packager.chain_name,
            extra=build_log_extra(packager=packager, additional=exc.context),
        )
        record_poll_failure(packager)

        return False
    except FetchError as exc:
        logger.warning(
            "Failed to fetch oracle state for %s: %s",
            packager.chain_name,
            exc.message,
            extra=build_log_extra(packager=packager, additional=exc.context),
        )
        record_poll_failure(packager)

        return False

    update_metrics(collector.metric_set, snapshot)
    record_poll_success(packager)

    logger.debug(
        "Updated oracle metrics for %s at height %s.",
        packager.chain_name,
        snapshot.block_height,
        extra=build_log_extra(
            packager=packager,
            endpoint=collector.selector.state.selected,
            additional={"block_height": snapshot.block_height, "validator_count": len(snapshot.validators)},
        ),
    )

    return True


__all__ = ["collect_oracle_metrics", "poll_chain"]
