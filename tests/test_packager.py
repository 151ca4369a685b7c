from __future__ import annotations

import logging

import pytest
from prometheus_client import CollectorRegistry

from oracle_monitor.exceptions import ConfigError, ValidationError
from oracle_monitor.metrics import get_fleet_registry
from oracle_monitor.packager import ChainConfig, Endpoints, Mode, new_packager


def _packager(mode: Mode = Mode.NETWORK, *monikers: str, apis=("https://api.example/",), **overrides):
    arguments = {
        "registry": None,
        "logger": None,
        "mainnet": True,
        "chain_id": "umee-1",
        "chain_name": "umee",
        "package": "oracle",
        "protocol_type": "cosmos",
        "chain_config": ChainConfig(display_name="Umee"),
        "endpoints": Endpoints(apis=apis),
    }
    arguments.update(overrides)

    return new_packager(
        mode,
        arguments["registry"],
        arguments["logger"],
        arguments["mainnet"],
        arguments["chain_id"],
        arguments["chain_name"],
        arguments["package"],
        arguments["protocol_type"],
        arguments["chain_config"],
        arguments["endpoints"],
        *monikers,
    )


def test_network_packager_defaults_to_fleet_registry() -> None:
    packager = _packager()

    assert packager.mode is Mode.NETWORK
    assert packager.registry is get_fleet_registry()
    assert packager.logger.name == "oracle_monitor.collector"
    assert packager.endpoints.apis == ("https://api.example",)
    assert packager.monikers == ()


def test_validator_packager_gets_private_registry() -> None:
    first = _packager(Mode.VALIDATOR, "Alpha")
    second = _packager(Mode.VALIDATOR, "Alpha")

    assert first.registry is not get_fleet_registry()
    assert first.registry is not second.registry
    assert first.monikers == ("Alpha",)


def test_validator_packager_requires_moniker() -> None:
    with pytest.raises(ValidationError) as exc_info:
        _packager(Mode.VALIDATOR)

    assert exc_info.value.config_key == "monikers"


def test_packager_without_endpoints_is_config_error() -> None:
    with pytest.raises(ConfigError) as exc_info:
        _packager(apis=())

    assert not isinstance(exc_info.value, ValidationError)
    assert exc_info.value.chain == "umee"
    assert "No API endpoints" in str(exc_info.value)


def test_packager_rejects_non_http_endpoint() -> None:
    with pytest.raises(ValidationError) as exc_info:
        _packager(apis=("grpc://api.example:9090",))

    assert exc_info.value.config_key == "endpoints"


def test_packager_deduplicates_endpoints_in_order() -> None:
    packager = _packager(apis=("https://b.example/", "https://a.example", "https://b.example"))

    assert packager.endpoints.apis == ("https://b.example", "https://a.example")


def test_packager_accepts_mode_string_and_explicit_registry() -> None:
    registry = CollectorRegistry()
    logger = logging.getLogger("custom.collector")

    packager = _packager("validator", "Alpha", "Beta", registry=registry, logger=logger)

    assert packager.mode is Mode.VALIDATOR
    assert packager.registry is registry
    assert packager.logger is logger
    assert packager.monikers == ("Alpha", "Beta")


def test_packager_rejects_unknown_mode() -> None:
    with pytest.raises(ValidationError):
        _packager("solo")


@pytest.mark.parametrize("package", ["", "oracle-module", "1oracle"])
def test_packager_rejects_invalid_package(package: str) -> None:
    with pytest.raises(ValidationError):
        _packager(package=package)


def test_chain_target_carries_display_name_and_endpoints() -> None:
    packager = _packager(chain_config=ChainConfig(display_name=""))

    target = packager.chain_target()

    assert target.chain_name == "umee"
    assert target.display_name == "umee"
    assert target.protocol_type == "cosmos"
    assert target.endpoints == ("https://api.example",)


def test_identity_separates_modes_and_registries() -> None:
    network = _packager()
    validator = _packager(Mode.VALIDATOR, "Alpha", registry=network.registry)

    assert network.identity != validator.identity
    assert network.identity == _packager().identity
