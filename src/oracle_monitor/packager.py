"""Packager: the configuration bundle a collector is started with."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from prometheus_client import CollectorRegistry

from .exceptions import ConfigError, ValidationError
from .models import ChainTarget

DEFAULT_PROTOCOL_TYPE = "cosmos"
DEFAULT_LOGGER_NAME = "oracle_monitor.collector"

# Package names become the metric subsystem, so they must be valid name parts.
PACKAGE_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class Mode(str, Enum):
    """Operating mode; selects the registry scope and metric label shape."""

    NETWORK = "network"
    VALIDATOR = "validator"


@dataclass(frozen=True, slots=True)
class ChainConfig:
    display_name: str


@dataclass(frozen=True, slots=True)
class Endpoints:
    apis: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable of URLs but store an immutable tuple.
        object.__setattr__(self, "apis", tuple(self.apis))


@dataclass(frozen=True, slots=True)
class Packager:
    """Fully built collector configuration, passed by value into ``start``."""

    mode: Mode
    registry: CollectorRegistry
    logger: logging.Logger
    mainnet: bool
    chain_id: str
    chain_name: str
    package: str
    protocol_type: str
    chain_config: ChainConfig
    endpoints: Endpoints
    monikers: tuple[str, ...] = ()

    @property
    def identity(self) -> tuple[int, Mode, str, str]:
        """Key identifying this chain's collector within its registry."""

        return (id(self.registry), self.mode, self.package, self.chain_name)

    def chain_target(self) -> ChainTarget:
        return ChainTarget(
            chain_name=self.chain_name,
            protocol_type=self.protocol_type,
            endpoints=self.endpoints.apis,
            display_name=self.chain_config.display_name or self.chain_name,
        )


def new_packager(
    mode: Mode,
    registry: CollectorRegistry | None,
    logger: logging.Logger | None,
    mainnet: bool,
    chain_id: str,
    chain_name: str,
    package: str,
    protocol_type: str,
    chain_config: ChainConfig,
    endpoints: Endpoints,
    *monikers: str,
) -> Packager:
    """Validate the inputs and build a ``Packager``.

    Network mode falls back to the shared fleet registry; validator mode falls
    back to a fresh process-local registry and requires at least one moniker.

    Raises:
        ConfigError: If no API endpoints are configured.
        ValidationError: If any other field is missing or malformed.
    """
    if not isinstance(mode, Mode):
        try:
            mode = Mode(mode)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown operating mode '{mode}'.",
                chain=chain_name if isinstance(chain_name, str) else None,
                config_key="mode",
                value=mode,
                expected_type="network|validator",
            ) from exc

    name = _require_non_empty_string(chain_name, "chain_name")
    resolved_chain_id = _require_non_empty_string(chain_id, "chain_id", chain=name)
    resolved_package = _require_non_empty_string(package, "package", chain=name)

    if not PACKAGE_NAME_PATTERN.match(resolved_package):
        raise ValidationError(
            f"package '{resolved_package}' for {name} must be a valid metric name segment.",
            chain=name,
            config_key="package",
            value=resolved_package,
            expected_type="identifier",
        )

    resolved_protocol = _require_non_empty_string(protocol_type, "protocol_type", chain=name).lower()

    apis = _normalize_endpoints(endpoints, chain=name)

    resolved_monikers = tuple(
        _require_non_empty_string(moniker, "monikers", chain=name) for moniker in monikers
    )

    if mode is Mode.VALIDATOR and not resolved_monikers:
        raise ValidationError(
            f"Validator mode for {name} requires at least one moniker.",
            chain=name,
            config_key="monikers",
        )

    if registry is None:
        if mode is Mode.NETWORK:
            from .metrics import get_fleet_registry

            registry = get_fleet_registry()
        else:
            registry = CollectorRegistry()

    return Packager(
        mode=mode,
        registry=registry,
        logger=logger or logging.getLogger(DEFAULT_LOGGER_NAME),
        mainnet=bool(mainnet),
        chain_id=resolved_chain_id,
        chain_name=name,
        package=resolved_package,
        protocol_type=resolved_protocol,
        chain_config=chain_config if chain_config.display_name else ChainConfig(display_name=name),
        endpoints=Endpoints(apis=apis),
        monikers=resolved_monikers,
    )


def _normalize_endpoints(endpoints: Endpoints, *, chain: str) -> tuple[str, ...]:
    apis: list[str] = []

    for index, raw_url in enumerate(endpoints.apis):
        url = _require_non_empty_string(raw_url, f"endpoints.apis[{index}]", chain=chain)

        if not url.startswith(("http://", "https://")):
            raise ValidationError(
                f"endpoints.apis[{index}] for {chain} must be an http(s) URL.",
                chain=chain,
                config_key="endpoints",
                value=url,
                expected_type="url",
            )

        url = url.rstrip("/")

        if url not in apis:
            apis.append(url)

    if not apis:
        raise ConfigError(
            f"No API endpoints configured for {chain}.",
            chain=chain,
            config_key="endpoints",
        )

    return tuple(apis)


def _require_non_empty_string(value: Any, location: str, *, chain: str | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{location} must be a non-empty string.",
            chain=chain,
            config_key=location,
            expected_type="string",
            value=value if value is None or isinstance(value, str) else type(value).__name__,
        )

    return value.strip()


__all__ = [
    "ChainConfig",
    "DEFAULT_PROTOCOL_TYPE",
    "Endpoints",
    "Mode",
    "Packager",
    "new_packager",
]
