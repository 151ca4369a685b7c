"""Core data models used across the monitor."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ChainTarget:
    """Immutable description of the chain a collector polls."""

    chain_name: str
    protocol_type: str
    endpoints: tuple[str, ...]
    display_name: str


@dataclass(frozen=True, slots=True)
class ValidatorMissCounter:
    operator_address: str
    moniker: str
    miss_counter: int


@dataclass(frozen=True, slots=True)
class OracleSnapshot:
    """Normalized oracle state produced by one successful fetch."""

    slash_window: int
    vote_period: int
    min_valid_per_window: int
    vote_window: int
    block_height: int
    validators: tuple[ValidatorMissCounter, ...] = ()


@dataclass(slots=True)
class EndpointState:
    """Per-chain cursor over candidate endpoints, owned by one collector loop."""

    selected: str | None = None
    consecutive_failures: int = 0

    def reset(self) -> None:
        self.selected = None
        self.consecutive_failures = 0


__all__ = [
    "ChainTarget",
    "EndpointState",
    "OracleSnapshot",
    "ValidatorMissCounter",
]
