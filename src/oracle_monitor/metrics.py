"""Prometheus metric registry and helpers for oracle collector state."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable

from prometheus_client import CollectorRegistry, Gauge

from .exceptions import DuplicateRegistrationError
from .models import OracleSnapshot
from .packager import Mode, Packager

NAMESPACE = "validator_monitor"
SUBSYSTEM = "oracle"

MISS_COUNTER_METRIC_NAME = "miss_counter"
SLASH_WINDOW_METRIC_NAME = "slash_window"
VOTE_PERIOD_METRIC_NAME = "vote_period"
MIN_VALID_PER_WINDOW_METRIC_NAME = "min_valid_per_window"
VOTE_WINDOW_METRIC_NAME = "vote_window"
BLOCK_HEIGHT_METRIC_NAME = "block_height"

METRIC_NAMES = (
    MISS_COUNTER_METRIC_NAME,
    SLASH_WINDOW_METRIC_NAME,
    VOTE_PERIOD_METRIC_NAME,
    MIN_VALID_PER_WINDOW_METRIC_NAME,
    VOTE_WINDOW_METRIC_NAME,
    BLOCK_HEIGHT_METRIC_NAME,
)

BASE_LABEL_NAMES = ("chain", "chain_id", "package", "mainnet")
VALIDATOR_LABEL_NAMES = ("validator_operator_address", "validator_moniker")

# Label shape per operating mode. Validator mode adds the monitored moniker
# to every series so it never collides with the chain-labeled fleet series.
MODE_LABEL_NAMES: dict[Mode, tuple[str, ...]] = {
    Mode.NETWORK: BASE_LABEL_NAMES,
    Mode.VALIDATOR: (*BASE_LABEL_NAMES, "moniker"),
}


def build_metric_name(namespace: str, subsystem: str, name: str) -> str:
    """Return the fully qualified exposition name of a metric."""

    return "_".join(part for part in (namespace, subsystem, name) if part)


def label_values(packager: Packager) -> tuple[str, ...]:
    """Return the base label values for the packager's mode."""

    values = (
        packager.chain_name,
        packager.chain_id,
        packager.package,
        "true" if packager.mainnet else "false",
    )

    if packager.mode is Mode.VALIDATOR:
        return (*values, ",".join(packager.monikers))

    return values


@dataclass(slots=True)
class OracleMetricFamilies:
    """The six gauge families registered once per registry, mode and package."""

    registry: CollectorRegistry
    mode: Mode
    miss_counter: Gauge
    slash_window: Gauge
    vote_period: Gauge
    min_valid_per_window: Gauge
    vote_window: Gauge
    block_height: Gauge


@dataclass(slots=True)
class MetricSet:
    """Instruments bound to a single chain's label values."""

    families: OracleMetricFamilies
    labels: tuple[str, ...]
    slash_window: Gauge
    vote_period: Gauge
    min_valid_per_window: Gauge
    vote_window: Gauge
    block_height: Gauge
    validator_labels: set[tuple[str, ...]] = field(default_factory=set)

    @property
    def registry(self) -> CollectorRegistry:
        return self.families.registry


def create_metric_families(
    registry: CollectorRegistry,
    mode: Mode,
    package: str = SUBSYSTEM,
) -> OracleMetricFamilies:
    """Register the six oracle gauge families in ``registry``.

    Raises:
        DuplicateRegistrationError: If a family with the same name already exists.
    """
    base_labels = MODE_LABEL_NAMES[mode]

    definitions = (
        (
            "miss_counter",
            MISS_COUNTER_METRIC_NAME,
            "Oracle vote miss counter of a validator in the current slash window.",
            (*base_labels, *VALIDATOR_LABEL_NAMES),
        ),
        (
            "slash_window",
            SLASH_WINDOW_METRIC_NAME,
            "Oracle slash window length in blocks.",
            base_labels,
        ),
        (
            "vote_period",
            VOTE_PERIOD_METRIC_NAME,
            "Oracle vote period length in blocks.",
            base_labels,
        ),
        (
            "min_valid_per_window",
            MIN_VALID_PER_WINDOW_METRIC_NAME,
            "Minimum number of valid oracle votes required per slash window.",
            base_labels,
        ),
        (
            "vote_window",
            VOTE_WINDOW_METRIC_NAME,
            "Number of oracle vote periods in one slash window.",
            base_labels,
        ),
        (
            "block_height",
            BLOCK_HEIGHT_METRIC_NAME,
            "Latest block height reported by the selected API endpoint.",
            base_labels,
        ),
    )

    created: dict[str, Gauge] = {}

    for attribute, metric_name, documentation, labelnames in definitions:
        try:
            created[attribute] = Gauge(
                metric_name,
                documentation,
                labelnames=labelnames,
                namespace=NAMESPACE,
                subsystem=package,
                registry=registry,
            )
        except ValueError as exc:
            for gauge in created.values():
                registry.unregister(gauge)

            raise DuplicateRegistrationError(
                f"Metric {build_metric_name(NAMESPACE, package, metric_name)} is already registered.",
                config_key="registry",
                context={"mode": mode.value, "package": package},
            ) from exc

    return OracleMetricFamilies(registry=registry, mode=mode, **created)


_FLEET_REGISTRY = CollectorRegistry()

_FAMILIES: dict[tuple[int, Mode, str], OracleMetricFamilies] = {}

_BOUND: dict[tuple[int, Mode, str, str], MetricSet] = {}

_BIND_LOCK = threading.Lock()


def get_fleet_registry() -> CollectorRegistry:
    """Return the registry shared by every network-mode collector."""

    return _FLEET_REGISTRY


def bind_metrics(packager: Packager) -> MetricSet:
    """Bind the six instruments for the packager's chain.

    Binding is idempotent: a second call for the same registry, mode, package
    and chain returns the already bound set.

    Raises:
        DuplicateRegistrationError: If the chain is already bound with different
            label values, or the families collide with foreign collectors.
    """
    registry = packager.registry
    values = label_values(packager)

    with _BIND_LOCK:
        existing = _BOUND.get(packager.identity)

        if existing is not None:
            if existing.labels != values:
                raise DuplicateRegistrationError(
                    f"Chain {packager.chain_name} is already bound with different labels.",
                    chain=packager.chain_name,
                    config_key="labels",
                    context={"mode": packager.mode.value, "package": packager.package},
                )

            return existing

        family_key = (id(registry), packager.mode, packager.package)
        families = _FAMILIES.get(family_key)

        if families is None:
            families = create_metric_families(registry, packager.mode, packager.package)
            _FAMILIES[family_key] = families

        metric_set = MetricSet(
            families=families,
            labels=values,
            slash_window=families.slash_window.labels(*values),
            vote_period=families.vote_period.labels(*values),
            min_valid_per_window=families.min_valid_per_window.labels(*values),
            vote_window=families.vote_window.labels(*values),
            block_height=families.block_height.labels(*values),
        )

        _BOUND[packager.identity] = metric_set

        return metric_set


def update_metrics(metric_set: MetricSet, snapshot: OracleSnapshot) -> None:
    """Write a snapshot into the bound instruments."""

    metric_set.slash_window.set(snapshot.slash_window)
    metric_set.vote_period.set(snapshot.vote_period)
    metric_set.min_valid_per_window.set(snapshot.min_valid_per_window)
    metric_set.vote_window.set(snapshot.vote_window)
    metric_set.block_height.set(snapshot.block_height)

    reported: set[tuple[str, ...]] = set()

    for validator in snapshot.validators:
        labels = (*metric_set.labels, validator.operator_address, validator.moniker)
        metric_set.families.miss_counter.labels(*labels).set(validator.miss_counter)
        reported.add(labels)

    for labels in metric_set.validator_labels - reported:
        _safe_remove_metric(metric_set.families.miss_counter, labels)

    metric_set.validator_labels = reported


def _safe_remove_metric(gauge: Gauge, labels: tuple[str, ...]) -> None:
    try:
        gauge.remove(*labels)
    except KeyError:
        pass


ChainKey = tuple[str, str, str]

CONFIGURED_CHAINS: set[ChainKey] = set()

CHAIN_HEALTH_STATUS: dict[ChainKey, bool] = {}

CHAIN_LAST_SUCCESS: Dict[ChainKey, float] = {}


def chain_key(packager: Packager) -> ChainKey:
    """Return a stable identity for a chain collector in health reports."""

    return (packager.package, packager.chain_name, packager.mode.value)


def set_configured_chains(packagers: Iterable[Packager]) -> None:
    CONFIGURED_CHAINS.clear()

    for packager in packagers:
        CONFIGURED_CHAINS.add(chain_key(packager))


def record_poll_success(packager: Packager, *, timestamp: float | None = None) -> None:
    """Record a successful polling cycle for the given chain."""

    key = chain_key(packager)
    CHAIN_HEALTH_STATUS[key] = True
    CHAIN_LAST_SUCCESS[key] = time.time() if timestamp is None else timestamp


def record_poll_failure(packager: Packager) -> None:
    """Record a failed polling cycle; metric values are left untouched."""

    CHAIN_HEALTH_STATUS[chain_key(packager)] = False


def reset_metrics_state(registry: CollectorRegistry | None = None) -> CollectorRegistry:
    """Replace the fleet registry and clear all bound instruments and health state."""

    global _FLEET_REGISTRY

    with _BIND_LOCK:
        _FLEET_REGISTRY = registry or CollectorRegistry()
        _FAMILIES.clear()
        _BOUND.clear()

    CONFIGURED_CHAINS.clear()
    CHAIN_HEALTH_STATUS.clear()
    CHAIN_LAST_SUCCESS.clear()

    return _FLEET_REGISTRY


__all__ = [
    "BASE_LABEL_NAMES",
    "BLOCK_HEIGHT_METRIC_NAME",
    "CHAIN_HEALTH_STATUS",
    "CHAIN_LAST_SUCCESS",
    "CONFIGURED_CHAINS",
    "MIN_VALID_PER_WINDOW_METRIC_NAME",
    "MISS_COUNTER_METRIC_NAME",
    "METRIC_NAMES",
    "MODE_LABEL_NAMES",
    "MetricSet",
    "NAMESPACE",
    "OracleMetricFamilies",
    "SLASH_WINDOW_METRIC_NAME",
    "SUBSYSTEM",
    "VALIDATOR_LABEL_NAMES",
    "VOTE_PERIOD_METRIC_NAME",
    "VOTE_WINDOW_METRIC_NAME",
    "bind_metrics",
    "build_metric_name",
    "chain_key",
    "create_metric_families",
    "get_fleet_registry",
    "label_values",
    "record_poll_failure",
    "record_poll_success",
    "reset_metrics_state",
    "set_configured_chains",
    "update_metrics",
]
