from __future__ import annotations

import pytest

from conftest import UMEE_ENDPOINT, FakeResponse, FakeSession, build_umee_routes
from oracle_monitor.exceptions import ConfigError, DecodeError, PartialDataError, UnreachableError
from oracle_monitor.models import ChainTarget
from oracle_monitor.oracle import (
    INT64_MAX,
    VALIDATORS_PATH,
    OracleFetcher,
    decode_int,
    decode_min_valid_per_window,
    fetch,
    resolve_profile,
)
from oracle_monitor.rest import RestClient

DECODE_ARGS = {"chain": "umee", "endpoint": UMEE_ENDPOINT, "operation": "test"}


def _target(chain_name: str = "umee", protocol_type: str = "cosmos") -> ChainTarget:
    return ChainTarget(
        chain_name=chain_name,
        protocol_type=protocol_type,
        endpoints=(UMEE_ENDPOINT,),
        display_name=chain_name.title(),
    )


def _client(routes: dict) -> RestClient:
    return RestClient(FakeSession(routes), "umee", timeout_seconds=1.0, max_attempts=1)


@pytest.mark.parametrize(("value", "expected"), [("42", 42), (42, 42), (" 7 ", 7), (3.0, 3), ("0", 0)])
def test_decode_int_accepts_strings_and_native_numbers(value, expected: int) -> None:
    assert decode_int(value, field="f", **DECODE_ARGS) == expected


@pytest.mark.parametrize("value", ["abc", "1.5", None, True, {}, 1.5])
def test_decode_int_rejects_non_integers(value) -> None:
    with pytest.raises(DecodeError):
        decode_int(value, field="f", **DECODE_ARGS)


@pytest.mark.parametrize("value", ["-1", -5, str(INT64_MAX + 1)])
def test_decode_int_rejects_out_of_range(value) -> None:
    with pytest.raises(PartialDataError) as exc_info:
        decode_int(value, field="f", **DECODE_ARGS)

    assert exc_info.value.error_kind == "partial_data"


def test_decode_min_valid_per_window_converts_ratio_to_count() -> None:
    assert decode_min_valid_per_window("0.050000000000000000", 20160, **DECODE_ARGS) == 1008
    assert decode_min_valid_per_window("0.333333333333333333", 10, **DECODE_ARGS) == 4
    assert decode_min_valid_per_window("9", 10, **DECODE_ARGS) == 9


@pytest.mark.parametrize(
    ("value", "vote_window", "expected"),
    [(0.05, 20160, 1008), (0.5, 10, 5), (0.0, 10, 0), (" 0.25 ", 8, 2)],
)
def test_decode_min_valid_per_window_accepts_native_ratios(value, vote_window: int, expected: int) -> None:
    assert decode_min_valid_per_window(value, vote_window, **DECODE_ARGS) == expected


@pytest.mark.parametrize("value", [float("nan"), float("inf"), "0.x5", None, True])
def test_decode_min_valid_per_window_rejects_non_numbers(value) -> None:
    with pytest.raises(DecodeError):
        decode_min_valid_per_window(value, 10, **DECODE_ARGS)


def test_decode_min_valid_per_window_rejects_ratio_above_one() -> None:
    with pytest.raises(PartialDataError):
        decode_min_valid_per_window("1.5", 10, **DECODE_ARGS)


def test_resolve_profile_for_supported_chains() -> None:
    assert resolve_profile(_target("umee")).params_path == "/umee/oracle/v1/params"
    assert resolve_profile(_target("Nibiru")).params_path == "/nibiru/oracle/v1beta1/params"
    assert resolve_profile(_target("sei")).miss_field == ("vote_penalty_counter", "miss_count")


@pytest.mark.parametrize(("chain_name", "protocol_type"), [("osmosis", "cosmos"), ("umee", "evm")])
def test_resolve_profile_rejects_unsupported(chain_name: str, protocol_type: str) -> None:
    with pytest.raises(ConfigError):
        resolve_profile(_target(chain_name, protocol_type))


def test_fetch_builds_snapshot() -> None:
    snapshot = fetch(UMEE_ENDPOINT, _target(), client=_client(build_umee_routes()))

    assert snapshot.slash_window == 100800
    assert snapshot.vote_period == 5
    assert snapshot.vote_window == 20160
    assert snapshot.min_valid_per_window == 1008
    assert snapshot.block_height == 1200
    assert [(v.operator_address, v.moniker, v.miss_counter) for v in snapshot.validators] == [
        ("umeevaloper1alpha", "Alpha", 4),
        ("umeevaloper1beta", "Beta", 7),
    ]


def test_fetch_filters_by_moniker() -> None:
    fetcher = OracleFetcher(_client(build_umee_routes()), _target(), monikers=("Beta",))

    snapshot = fetcher.fetch(UMEE_ENDPOINT)

    assert [v.moniker for v in snapshot.validators] == ["Beta"]


def test_fetch_unknown_moniker_is_partial_data() -> None:
    fetcher = OracleFetcher(_client(build_umee_routes()), _target(), monikers=("Gamma",))

    with pytest.raises(PartialDataError) as exc_info:
        fetcher.fetch(UMEE_ENDPOINT)

    assert exc_info.value.context["missing_monikers"] == ["Gamma"]


def test_fetch_negative_miss_counter_is_partial_data() -> None:
    routes = build_umee_routes(miss_counters={("umeevaloper1alpha", "Alpha"): "-3"})

    with pytest.raises(PartialDataError):
        fetch(UMEE_ENDPOINT, _target(), client=_client(routes))


def test_fetch_zero_vote_period_is_partial_data() -> None:
    routes = build_umee_routes()
    routes[f"{UMEE_ENDPOINT}/umee/oracle/v1/params"]["params"]["vote_period"] = "0"

    with pytest.raises(PartialDataError):
        fetch(UMEE_ENDPOINT, _target(), client=_client(routes))


def test_fetch_missing_field_is_decode_error() -> None:
    routes = build_umee_routes()
    routes[f"{UMEE_ENDPOINT}/cosmos/base/tendermint/v1beta1/blocks/latest"] = {"block": {}}

    with pytest.raises(DecodeError) as exc_info:
        fetch(UMEE_ENDPOINT, _target(), client=_client(routes))

    assert exc_info.value.context["field"] == "block.header.height"


def test_fetch_unreachable_miss_counter_fails_whole_fetch() -> None:
    routes = build_umee_routes()
    routes[f"{UMEE_ENDPOINT}/umee/oracle/v1/validators/umeevaloper1beta/miss"] = FakeResponse(500, {})

    with pytest.raises(UnreachableError):
        fetch(UMEE_ENDPOINT, _target(), client=_client(routes))


def test_fetch_follows_validator_pagination() -> None:
    routes = build_umee_routes(miss_counters={("umeevaloper1alpha", "Alpha"): "1"})
    first_page = f"{UMEE_ENDPOINT}{VALIDATORS_PATH}"
    routes[first_page]["pagination"]["next_key"] = "FPK/+=="
    routes[f"{first_page}&pagination.key=FPK%2F%2B%3D%3D"] = {
        "validators": [{"operator_address": "umeevaloper1gamma", "description": {"moniker": "Gamma"}}],
        "pagination": {"next_key": None},
    }
    routes[f"{UMEE_ENDPOINT}/umee/oracle/v1/validators/umeevaloper1gamma/miss"] = {"miss_counter": 2}

    snapshot = fetch(UMEE_ENDPOINT, _target(), client=_client(routes))

    assert [v.moniker for v in snapshot.validators] == ["Alpha", "Gamma"]


def test_fetch_sei_reads_vote_penalty_counter() -> None:
    endpoint = "https://sei-api.example"
    routes = {
        f"{endpoint}/sei-protocol/sei-chain/oracle/params": {
            "params": {"vote_period": "2", "slash_window": "108000", "min_valid_per_window": "0.050000000000000000"}
        },
        f"{endpoint}/cosmos/base/tendermint/v1beta1/blocks/latest": {"block": {"header": {"height": "9"}}},
        f"{endpoint}{VALIDATORS_PATH}": {
            "validators": [{"operator_address": "seivaloper1x", "description": {"moniker": "X"}}],
            "pagination": {"next_key": None},
        },
        f"{endpoint}/sei-protocol/sei-chain/oracle/validators/seivaloper1x/vote_penalty_counter": {
            "vote_penalty_counter": {"miss_count": "12", "abstain_count": "0", "success_count": "100"}
        },
    }

    snapshot = fetch(endpoint, _target("sei"), client=_client(routes))

    assert snapshot.vote_window == 54000
    assert snapshot.min_valid_per_window == 2700
    assert snapshot.validators[0].miss_counter == 12


def test_fetch_native_float_params_builds_snapshot() -> None:
    routes = build_umee_routes()
    routes[f"{UMEE_ENDPOINT}/umee/oracle/v1/params"]["params"].update(
        {"vote_period": 5, "slash_window": 100800, "min_valid_per_window": 0.05}
    )

    snapshot = fetch(UMEE_ENDPOINT, _target(), client=_client(routes))

    assert snapshot.min_valid_per_window == 1008
    assert snapshot.vote_window == 20160


@pytest.mark.parametrize("pagination", ["garbage", ["next"], 7])
def test_fetch_malformed_pagination_is_decode_error(pagination) -> None:
    routes = build_umee_routes()
    routes[f"{UMEE_ENDPOINT}{VALIDATORS_PATH}"]["pagination"] = pagination

    with pytest.raises(DecodeError) as exc_info:
        fetch(UMEE_ENDPOINT, _target(), client=_client(routes))

    assert exc_info.value.context["field"] == "pagination"


@pytest.mark.parametrize(
    "entry",
    [
        {"operator_address": "umeevaloper1alpha", "description": {"moniker": None}},
        {"operator_address": "umeevaloper1alpha", "description": {"moniker": 12}},
        {"operator_address": None, "description": {"moniker": "Alpha"}},
    ],
)
def test_fetch_non_string_validator_fields_are_decode_errors(entry) -> None:
    routes = build_umee_routes()
    routes[f"{UMEE_ENDPOINT}{VALIDATORS_PATH}"]["validators"] = [entry]

    with pytest.raises(DecodeError) as exc_info:
        fetch(UMEE_ENDPOINT, _target(), client=_client(routes))

    assert exc_info.value.context["field"] == "validators"
