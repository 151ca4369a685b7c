"""Ordered endpoint failover with a cached selection per chain."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from .exceptions import ConfigError, FetchError, NoHealthyEndpointError
from .logging import get_logger
from .models import EndpointState
from .rest import RestClient

LOGGER = get_logger(__name__)

LIVENESS_PATH = "/cosmos/base/tendermint/v1beta1/syncing"

ProbeFunc = Callable[[str], bool]


def probe_endpoint(client: RestClient, endpoint: str, *, timeout_seconds: float) -> bool:
    """Return True when ``endpoint`` answers the liveness probe and is not catching up."""

    try:
        body = client.get_json(
            endpoint,
            LIVENESS_PATH,
            operation="liveness_probe",
            max_attempts=1,
            timeout_seconds=timeout_seconds,
            log_level=logging.DEBUG,
            extra={"chain": client.chain, "endpoint": endpoint},
        )
    except FetchError:
        return False

    return isinstance(body, dict) and body.get("syncing") is not True


def select(
    candidates: Sequence[str],
    previous_selection: str | None,
    *,
    probe: ProbeFunc,
    chain: str | None = None,
) -> str:
    """Return the endpoint to use for this cycle.

    A previous selection that still passes the probe is reused. Otherwise the
    candidates are probed in declared order and the first healthy one wins.

    Raises:
        NoHealthyEndpointError: If every candidate fails the probe.
    """
    if previous_selection is not None and probe(previous_selection):
        return previous_selection

    for candidate in candidates:
        if candidate == previous_selection:
            continue

        if probe(candidate):
            return candidate

    raise NoHealthyEndpointError(
        f"No healthy API endpoint for {chain or 'chain'} among {len(candidates)} candidate(s).",
        chain=chain,
        candidates=list(candidates),
    )


class EndpointSelector:
    """Owns one chain's ``EndpointState`` and re-resolves after repeated failures."""

    def __init__(
        self,
        candidates: Sequence[str],
        probe: ProbeFunc,
        *,
        chain: str,
        failure_threshold: int,
        state: EndpointState | None = None,
    ) -> None:
        if not candidates:
            raise ConfigError(
                f"No API endpoints configured for {chain}.",
                chain=chain,
                config_key="endpoints",
            )

        self._candidates = tuple(candidates)
        self._probe = probe
        self._chain = chain
        self._failure_threshold = max(failure_threshold, 1)
        self._state = state or EndpointState()

    @property
    def state(self) -> EndpointState:
        return self._state

    @property
    def candidates(self) -> tuple[str, ...]:
        return self._candidates

    def acquire(self) -> str:
        """Select an endpoint for the next fetch and cache it."""

        previous = self._state.selected

        try:
            selected = select(self._candidates, previous, probe=self._probe, chain=self._chain)
        except NoHealthyEndpointError:
            self._state.selected = None
            raise

        if selected != previous:
            LOGGER.info(
                "Selected API endpoint %s for %s.",
                selected,
                self._chain,
                extra={"chain": self._chain, "endpoint": selected, "previous_endpoint": previous},
            )

        self._state.selected = selected

        return selected

    def record_success(self) -> None:
        self._state.consecutive_failures = 0

    def record_failure(self) -> None:
        self._state.consecutive_failures += 1

        if self._state.consecutive_failures >= self._failure_threshold:
            LOGGER.info(
                "Dropping cached endpoint %s for %s after %s consecutive failure(s).",
                self._state.selected,
                self._chain,
                self._state.consecutive_failures,
                extra={
                    "chain": self._chain,
                    "endpoint": self._state.selected,
                    "consecutive_failures": self._state.consecutive_failures,
                },
            )

            self._state.reset()


__all__ = [
    "EndpointSelector",
    "LIVENESS_PATH",
    "ProbeFunc",
    "probe_endpoint",
    "select",
]
