"""Per-chain collector construction and the blocking select-then-fetch step."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from ..context import ApplicationContext
from ..endpoints import EndpointSelector, probe_endpoint
from ..exceptions import FetchError
from ..metrics import MetricSet, bind_metrics
from ..models import OracleSnapshot
from ..oracle import OracleFetcher
from ..packager import Mode, Packager


@dataclass(slots=True)
class ChainCollector:
    """Everything one chain's loop owns: endpoint state, fetcher and bound metrics."""

    packager: Packager
    selector: EndpointSelector
    fetcher: OracleFetcher
    metric_set: MetricSet

    @property
    def logger(self) -> logging.Logger:
        return self.packager.logger

    @property
    def chain_name(self) -> str:
        return self.packager.chain_name

    def collect_snapshot_sync(self) -> OracleSnapshot:
        """Select an endpoint and fetch a snapshot; runs inside a worker thread.

        Raises:
            NoHealthyEndpointError: If no candidate endpoint is live.
            FetchError: If the fetch from the selected endpoint fails.
        """
        endpoint = self.selector.acquire()

        try:
            snapshot = self.fetcher.fetch(endpoint)
        except FetchError:
            self.selector.record_failure()
            raise

        self.selector.record_success()

        return snapshot


def build_chain_collector(packager: Packager, context: ApplicationContext) -> ChainCollector:
    """Validate the packager against the oracle profiles and bind its metrics.

    Raises:
        ConfigError: If the chain is unsupported or has no endpoints.
        DuplicateRegistrationError: If the metrics cannot be bound.
    """
    poller_settings = context.settings.poller
    target = packager.chain_target()
    client = context.create_rest_client(packager.chain_name)

    fetcher = OracleFetcher(
        client,
        target,
        monikers=packager.monikers if packager.mode is Mode.VALIDATOR else (),
        max_workers=poller_settings.fetch_max_workers,
    )

    selector = EndpointSelector(
        target.endpoints,
        partial(probe_endpoint, client, timeout_seconds=poller_settings.liveness_timeout_seconds),
        chain=packager.chain_name,
        failure_threshold=poller_settings.endpoint_failure_threshold,
    )

    metric_set = bind_metrics(packager)

    return ChainCollector(
        packager=packager,
        selector=selector,
        fetcher=fetcher,
        metric_set=metric_set,
    )


__all__ = ["ChainCollector", "build_chain_collector"]
