"""Oracle-module queries and decoding into normalized snapshots."""

from __future__ import annotations

import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence
from urllib.parse import quote

from .exceptions import ConfigError, DecodeError, PartialDataError
from .logging import get_logger
from .models import ChainTarget, OracleSnapshot, ValidatorMissCounter
from .packager import DEFAULT_PROTOCOL_TYPE
from .rest import RestClient

LOGGER = get_logger(__name__)

PARAMS_OPERATION = "oracle_params"
MISS_COUNTER_OPERATION = "oracle_miss_counter"
VALIDATORS_OPERATION = "bonded_validators"
BLOCK_HEIGHT_OPERATION = "latest_block"

VALIDATORS_PATH = "/cosmos/staking/v1beta1/validators?status=BOND_STATUS_BONDED&pagination.limit=500"
LATEST_BLOCK_PATH = "/cosmos/base/tendermint/v1beta1/blocks/latest"
MAX_VALIDATOR_PAGES = 10

INT64_MAX = 2**63 - 1
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True, slots=True)
class OracleApiProfile:
    """REST paths of one chain's oracle module."""

    params_path: str
    miss_path: str
    miss_field: tuple[str, ...]


ORACLE_API_PROFILES: dict[str, OracleApiProfile] = {
    "umee": OracleApiProfile(
        params_path="/umee/oracle/v1/params",
        miss_path="/umee/oracle/v1/validators/{valoper}/miss",
        miss_field=("miss_counter",),
    ),
    "nibiru": OracleApiProfile(
        params_path="/nibiru/oracle/v1beta1/params",
        miss_path="/nibiru/oracle/v1beta1/validators/{valoper}/miss",
        miss_field=("miss_counter",),
    ),
    "sei": OracleApiProfile(
        params_path="/sei-protocol/sei-chain/oracle/params",
        miss_path="/sei-protocol/sei-chain/oracle/validators/{valoper}/vote_penalty_counter",
        miss_field=("vote_penalty_counter", "miss_count"),
    ),
}


def resolve_profile(chain_target: ChainTarget) -> OracleApiProfile:
    """Return the oracle API profile for a chain.

    Raises:
        ConfigError: If the protocol type or chain has no oracle support.
    """
    if chain_target.protocol_type != DEFAULT_PROTOCOL_TYPE:
        raise ConfigError(
            f"Protocol type '{chain_target.protocol_type}' is not supported by the oracle collector.",
            chain=chain_target.chain_name,
            config_key="protocol_type",
        )

    profile = ORACLE_API_PROFILES.get(chain_target.chain_name.lower())

    if profile is None:
        raise ConfigError(
            f"Chain '{chain_target.chain_name}' has no supported oracle module.",
            chain=chain_target.chain_name,
            config_key="chain_name",
            context={"supported_chains": sorted(ORACLE_API_PROFILES)},
        )

    return profile


def lookup(body: Any, keys: Sequence[str], *, chain: str, endpoint: str, operation: str) -> Any:
    """Walk nested JSON objects, raising ``DecodeError`` on a missing key."""

    current = body

    for key in keys:
        if not isinstance(current, dict) or key not in current:
            raise DecodeError(
                f"Response for {operation} is missing '{'.'.join(keys)}'.",
                chain=chain,
                endpoint=endpoint,
                operation=operation,
                context={"field": ".".join(keys)},
            )

        current = current[key]

    return current


def decode_int(value: Any, *, field: str, chain: str, endpoint: str, operation: str) -> int:
    """Decode a string-encoded or native JSON integer into a non-negative int64.

    Raises:
        DecodeError: If the value is not an integer.
        PartialDataError: If the value is negative or exceeds int64.
    """
    if isinstance(value, bool):
        result = None
    elif isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
        result = int(value.strip())
    else:
        result = None

    if result is None:
        raise DecodeError(
            f"Field '{field}' is not an integer: {value!r}.",
            chain=chain,
            endpoint=endpoint,
            operation=operation,
            context={"field": field},
        )

    if result < 0 or result > INT64_MAX:
        raise PartialDataError(
            f"Field '{field}' is out of range: {result}.",
            chain=chain,
            endpoint=endpoint,
            operation=operation,
            context={"field": field, "value": result},
        )

    return result


def decode_min_valid_per_window(
    value: Any,
    vote_window: int,
    *,
    chain: str,
    endpoint: str,
    operation: str,
) -> int:
    """Decode ``min_valid_per_window`` as a count of vote periods.

    Chains expose either an integer count or an ``sdk.Dec`` ratio of the vote
    window, as a decimal string or a native JSON number. A ratio is converted
    to the number of valid votes it requires.
    """
    if isinstance(value, float) or (isinstance(value, str) and "." in value):
        try:
            ratio = Decimal(str(value).strip())
        except InvalidOperation:
            ratio = None

        if ratio is None or not ratio.is_finite():
            raise DecodeError(
                f"Field 'min_valid_per_window' is not a decimal: {value!r}.",
                chain=chain,
                endpoint=endpoint,
                operation=operation,
                context={"field": "min_valid_per_window"},
            )

        if ratio < 0 or ratio > 1:
            raise PartialDataError(
                f"Field 'min_valid_per_window' ratio is out of range: {value}.",
                chain=chain,
                endpoint=endpoint,
                operation=operation,
                context={"field": "min_valid_per_window", "value": value},
            )

        return math.ceil(ratio * vote_window)

    return decode_int(
        value,
        field="min_valid_per_window",
        chain=chain,
        endpoint=endpoint,
        operation=operation,
    )


class OracleFetcher:
    """Fetches one chain's oracle state from a selected endpoint."""

    def __init__(
        self,
        client: RestClient,
        chain_target: ChainTarget,
        *,
        monikers: Sequence[str] = (),
        max_workers: int = 8,
    ) -> None:
        self._client = client
        self._target = chain_target
        self._profile = resolve_profile(chain_target)
        self._monikers = tuple(monikers)
        self._max_workers = max(max_workers, 1)

    @property
    def chain_target(self) -> ChainTarget:
        return self._target

    def fetch(self, endpoint: str) -> OracleSnapshot:
        """Query params, latest block, the validator set and miss counters.

        Raises:
            UnreachableError: If any query fails at the transport level.
            DecodeError: If any response has an unexpected shape.
            PartialDataError: If a value is outside its expected domain.
        """
        slash_window, vote_period, min_valid_per_window, vote_window = self._fetch_params(endpoint)

        block_height = self._fetch_block_height(endpoint)

        validators = self._fetch_validators(endpoint)

        miss_counters = self._fetch_miss_counters(endpoint, validators)

        return OracleSnapshot(
            slash_window=slash_window,
            vote_period=vote_period,
            min_valid_per_window=min_valid_per_window,
            vote_window=vote_window,
            block_height=block_height,
            validators=miss_counters,
        )

    def _fetch_params(self, endpoint: str) -> tuple[int, int, int, int]:
        chain = self._target.chain_name
        body = self._client.get_json(
            endpoint,
            self._profile.params_path,
            operation=PARAMS_OPERATION,
            extra={"chain": chain, "endpoint": endpoint},
        )

        params = lookup(body, ("params",), chain=chain, endpoint=endpoint, operation=PARAMS_OPERATION)

        def _int_param(name: str) -> int:
            raw = lookup(params, (name,), chain=chain, endpoint=endpoint, operation=PARAMS_OPERATION)
            return decode_int(raw, field=name, chain=chain, endpoint=endpoint, operation=PARAMS_OPERATION)

        slash_window = _int_param("slash_window")
        vote_period = _int_param("vote_period")

        if vote_period == 0:
            raise PartialDataError(
                "Oracle vote_period is zero.",
                chain=chain,
                endpoint=endpoint,
                operation=PARAMS_OPERATION,
                context={"field": "vote_period", "value": 0},
            )

        vote_window = slash_window // vote_period

        min_valid_per_window = decode_min_valid_per_window(
            lookup(params, ("min_valid_per_window",), chain=chain, endpoint=endpoint, operation=PARAMS_OPERATION),
            vote_window,
            chain=chain,
            endpoint=endpoint,
            operation=PARAMS_OPERATION,
        )

        return slash_window, vote_period, min_valid_per_window, vote_window

    def _fetch_block_height(self, endpoint: str) -> int:
        chain = self._target.chain_name
        body = self._client.get_json(
            endpoint,
            LATEST_BLOCK_PATH,
            operation=BLOCK_HEIGHT_OPERATION,
            extra={"chain": chain, "endpoint": endpoint},
        )

        raw_height = lookup(
            body,
            ("block", "header", "height"),
            chain=chain,
            endpoint=endpoint,
            operation=BLOCK_HEIGHT_OPERATION,
        )

        return decode_int(
            raw_height,
            field="block.header.height",
            chain=chain,
            endpoint=endpoint,
            operation=BLOCK_HEIGHT_OPERATION,
        )

    def _fetch_validators(self, endpoint: str) -> list[tuple[str, str]]:
        """Return ``(operator_address, moniker)`` pairs of the bonded set, filtered by moniker."""

        chain = self._target.chain_name
        validators: list[tuple[str, str]] = []
        path = VALIDATORS_PATH

        for _page in range(MAX_VALIDATOR_PAGES):
            body = self._client.get_json(
                endpoint,
                path,
                operation=VALIDATORS_OPERATION,
                extra={"chain": chain, "endpoint": endpoint},
            )

            entries = lookup(body, ("validators",), chain=chain, endpoint=endpoint, operation=VALIDATORS_OPERATION)

            if not isinstance(entries, list):
                raise DecodeError(
                    "Field 'validators' is not a list.",
                    chain=chain,
                    endpoint=endpoint,
                    operation=VALIDATORS_OPERATION,
                    context={"field": "validators"},
                )

            for entry in entries:
                operator_address = lookup(
                    entry,
                    ("operator_address",),
                    chain=chain,
                    endpoint=endpoint,
                    operation=VALIDATORS_OPERATION,
                )
                moniker = lookup(
                    entry,
                    ("description", "moniker"),
                    chain=chain,
                    endpoint=endpoint,
                    operation=VALIDATORS_OPERATION,
                )

                if not isinstance(operator_address, str) or not isinstance(moniker, str):
                    raise DecodeError(
                        f"Validator entry has a non-string operator_address or moniker: {entry!r}.",
                        chain=chain,
                        endpoint=endpoint,
                        operation=VALIDATORS_OPERATION,
                        context={"field": "validators"},
                    )

                validators.append((operator_address, moniker.strip()))

            pagination = body.get("pagination") or {}

            if not isinstance(pagination, dict):
                raise DecodeError(
                    "Field 'pagination' is not an object.",
                    chain=chain,
                    endpoint=endpoint,
                    operation=VALIDATORS_OPERATION,
                    context={"field": "pagination"},
                )

            next_key = pagination.get("next_key")

            if not next_key:
                break

            path = f"{VALIDATORS_PATH}&pagination.key={quote(str(next_key), safe='')}"

        if not self._monikers:
            return validators

        selected = [validator for validator in validators if validator[1] in self._monikers]
        missing = set(self._monikers) - {moniker for _address, moniker in selected}

        if missing:
            raise PartialDataError(
                f"Moniker(s) {', '.join(sorted(missing))} not found in the bonded validator set.",
                chain=chain,
                endpoint=endpoint,
                operation=VALIDATORS_OPERATION,
                context={"missing_monikers": sorted(missing)},
            )

        return selected

    def _fetch_miss_counter(self, endpoint: str, validator: tuple[str, str]) -> ValidatorMissCounter:
        chain = self._target.chain_name
        operator_address, moniker = validator

        body = self._client.get_json(
            endpoint,
            self._profile.miss_path.format(valoper=operator_address),
            operation=MISS_COUNTER_OPERATION,
            extra={"chain": chain, "endpoint": endpoint, "validator_operator_address": operator_address},
        )

        raw_counter = lookup(
            body,
            self._profile.miss_field,
            chain=chain,
            endpoint=endpoint,
            operation=MISS_COUNTER_OPERATION,
        )

        return ValidatorMissCounter(
            operator_address=operator_address,
            moniker=moniker,
            miss_counter=decode_int(
                raw_counter,
                field=".".join(self._profile.miss_field),
                chain=chain,
                endpoint=endpoint,
                operation=MISS_COUNTER_OPERATION,
            ),
        )

    def _fetch_miss_counters(
        self,
        endpoint: str,
        validators: list[tuple[str, str]],
    ) -> tuple[ValidatorMissCounter, ...]:
        if not validators:
            LOGGER.debug(
                "No bonded validators reported for %s.",
                self._target.chain_name,
                extra={"chain": self._target.chain_name, "endpoint": endpoint},
            )
            return ()

        workers = min(self._max_workers, len(validators))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            return tuple(
                executor.map(lambda validator: self._fetch_miss_counter(endpoint, validator), validators)
            )


def fetch(
    endpoint: str,
    chain_target: ChainTarget,
    *,
    client: RestClient,
    monikers: Sequence[str] = (),
    max_workers: int = 8,
) -> OracleSnapshot:
    """Fetch an ``OracleSnapshot`` for ``chain_target`` from ``endpoint``."""

    fetcher = OracleFetcher(client, chain_target, monikers=monikers, max_workers=max_workers)

    return fetcher.fetch(endpoint)


__all__ = [
    "LATEST_BLOCK_PATH",
    "ORACLE_API_PROFILES",
    "OracleApiProfile",
    "OracleFetcher",
    "VALIDATORS_PATH",
    "decode_int",
    "decode_min_valid_per_window",
    "fetch",
    "lookup",
    "resolve_profile",
]
