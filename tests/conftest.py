from __future__ import annotations

from typing import Any, Callable

import pytest
from prometheus_client import CollectorRegistry

from oracle_monitor.context import ApplicationContext, reset_application_context
from oracle_monitor.metrics import reset_metrics_state
from oracle_monitor.packager import ChainConfig, Endpoints, Mode, Packager, new_packager
from oracle_monitor.poller.manager import reset_collector_manager
from oracle_monitor.rest import HttpSessionProtocol
from oracle_monitor.settings import (
    AppSettings,
    HealthSettings,
    LoggingSettings,
    PollerSettings,
)

UMEE_ENDPOINT = "https://umee-api.example"


class FakeResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload

        return self._payload


class FakeSession:
    """Routes GET requests by full URL; unknown URLs answer 404."""

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[str] = []

    def get(self, url: str, *, timeout: float | None = None, headers: Any = None) -> FakeResponse:
        self.calls.append(url)

        handler = self.routes.get(url)

        if handler is None:
            return FakeResponse(404, {"message": "not found"})

        if isinstance(handler, BaseException):
            raise handler

        if callable(handler):
            handler = handler()

        if isinstance(handler, FakeResponse):
            return handler

        return FakeResponse(200, handler)


def build_umee_routes(
    endpoint: str = UMEE_ENDPOINT,
    *,
    height: str = "1200",
    miss_counters: dict[tuple[str, str], Any] | None = None,
    syncing: bool = False,
) -> dict[str, Any]:
    counters = miss_counters if miss_counters is not None else {
        ("umeevaloper1alpha", "Alpha"): "4",
        ("umeevaloper1beta", "Beta"): "7",
    }

    routes: dict[str, Any] = {
        f"{endpoint}/cosmos/base/tendermint/v1beta1/syncing": {"syncing": syncing},
        f"{endpoint}/umee/oracle/v1/params": {
            "params": {
                "vote_period": "5",
                "vote_threshold": "0.500000000000000000",
                "slash_window": "100800",
                "min_valid_per_window": "0.050000000000000000",
                "slash_fraction": "0.000100000000000000",
            }
        },
        f"{endpoint}/cosmos/base/tendermint/v1beta1/blocks/latest": {
            "block": {"header": {"chain_id": "umee-1", "height": height}}
        },
        f"{endpoint}/cosmos/staking/v1beta1/validators?status=BOND_STATUS_BONDED&pagination.limit=500": {
            "validators": [
                {"operator_address": address, "description": {"moniker": moniker}}
                for address, moniker in counters
            ],
            "pagination": {"next_key": None, "total": str(len(counters))},
        },
    }

    for (address, _moniker), counter in counters.items():
        routes[f"{endpoint}/umee/oracle/v1/validators/{address}/miss"] = {"miss_counter": counter}

    return routes


def build_settings(**poller_overrides: Any) -> AppSettings:
    poller_values: dict[str, Any] = {
        "interval": "30s",
        "rest_request_timeout_seconds": 1.0,
        "rest_max_retries": 1,
        "liveness_timeout_seconds": 1.0,
        "endpoint_failure_threshold": 3,
        "fetch_max_workers": 4,
        "shutdown_timeout_seconds": 1.0,
    }
    poller_values.update(poller_overrides)

    return AppSettings(
        logging=LoggingSettings(level="INFO", format="text", color_enabled=False),
        poller=PollerSettings(**poller_values),
        health=HealthSettings(readiness_stale_threshold_seconds=300),
    )


def build_context(session: HttpSessionProtocol, **poller_overrides: Any) -> ApplicationContext:
    return ApplicationContext(
        settings=build_settings(**poller_overrides),
        session_factory=lambda: session,
    )


@pytest.fixture(autouse=True)
def reset_monitor_state() -> None:
    reset_metrics_state()
    reset_application_context()
    reset_collector_manager()
    yield
    reset_metrics_state()
    reset_application_context()
    reset_collector_manager()


@pytest.fixture
def umee_routes() -> Callable[..., dict[str, Any]]:
    return build_umee_routes


@pytest.fixture
def fake_session() -> Callable[[dict[str, Any]], FakeSession]:
    return FakeSession


@pytest.fixture
def context_factory() -> Callable[..., ApplicationContext]:
    return build_context


@pytest.fixture
def settings_factory() -> Callable[..., AppSettings]:
    return build_settings


@pytest.fixture
def packager_factory() -> Callable[..., Packager]:
    def _build(
        mode: Mode = Mode.NETWORK,
        *monikers: str,
        chain_name: str = "umee",
        chain_id: str = "umee-1",
        apis: tuple[str, ...] = (UMEE_ENDPOINT,),
        registry: CollectorRegistry | None = None,
        package: str = "oracle",
        mainnet: bool = True,
    ) -> Packager:
        return new_packager(
            mode,
            registry,
            None,
            mainnet,
            chain_id,
            chain_name,
            package,
            "cosmos",
            ChainConfig(display_name=chain_name.title()),
            Endpoints(apis=apis),
            *monikers,
        )

    return _build
