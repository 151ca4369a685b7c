import time

from oracle_monitor.health import (
    format_metrics_payload,
    generate_health_report,
    generate_readiness_report,
)
from oracle_monitor.metrics import (
    CHAIN_HEALTH_STATUS,
    CHAIN_LAST_SUCCESS,
    set_configured_chains,
)
from oracle_monitor.packager import Mode

UMEE = ("oracle", "umee", "network")
SEI = ("oracle", "sei", "network")


def _configure(packager_factory) -> None:
    set_configured_chains(
        [
            packager_factory(),
            packager_factory(chain_name="sei", chain_id="pacific-1"),
        ]
    )


def test_generate_health_report_ok_when_no_chains() -> None:
    set_configured_chains([])

    status, status_code, chains = generate_health_report()

    assert status == "ok"
    assert status_code == 200
    assert chains == []


def test_generate_health_report_initializing_when_configured(packager_factory) -> None:
    _configure(packager_factory)

    status, status_code, chains = generate_health_report()

    assert status == "initializing"
    assert status_code == 503
    assert chains == []


def test_generate_health_report_degraded(packager_factory) -> None:
    _configure(packager_factory)

    CHAIN_HEALTH_STATUS[UMEE] = True
    CHAIN_HEALTH_STATUS[SEI] = False

    status, status_code, chains = generate_health_report()

    assert status == "degraded"
    assert status_code == 200
    assert [(chain["chain"], chain["status"]) for chain in chains] == [("sei", "unhealthy"), ("umee", "ok")]


def test_generate_health_report_unhealthy(packager_factory) -> None:
    _configure(packager_factory)

    CHAIN_HEALTH_STATUS[UMEE] = False
    CHAIN_HEALTH_STATUS[SEI] = False

    status, status_code, _chains = generate_health_report()

    assert status == "unhealthy"
    assert status_code == 503


def test_generate_health_report_details_include_timestamp(packager_factory) -> None:
    set_configured_chains([packager_factory(Mode.VALIDATOR, "Alpha")])

    key = ("oracle", "umee", "validator")
    CHAIN_HEALTH_STATUS[key] = True
    CHAIN_LAST_SUCCESS[key] = 0.0

    _status, _code, chains = generate_health_report(include_details=True)

    assert chains == [
        {
            "chain": "umee",
            "package": "oracle",
            "mode": "validator",
            "status": "ok",
            "last_success_timestamp": "1970-01-01T00:00:00+00:00",
        }
    ]


def test_generate_readiness_report_staleness(packager_factory) -> None:
    now = time.time()

    _configure(packager_factory)

    CHAIN_HEALTH_STATUS[UMEE] = True
    CHAIN_LAST_SUCCESS[UMEE] = now

    CHAIN_HEALTH_STATUS[SEI] = True
    CHAIN_LAST_SUCCESS[SEI] = now - 10_000

    ready, details = generate_readiness_report()

    assert ready is True
    assert any(item["status"] == "not_ready" for item in details)


def test_generate_readiness_report_not_ready_before_first_poll(packager_factory) -> None:
    _configure(packager_factory)

    ready, details = generate_readiness_report()

    assert ready is False
    assert details == []


def test_format_metrics_payload_expands_scientific_notation() -> None:
    payload = (
        b"# HELP validator_monitor_oracle_block_height Latest block height.\n"
        b'validator_monitor_oracle_block_height{chain="umee"} 1.2345678e+07\n'
        b'validator_monitor_oracle_vote_window{chain="umee"} 20160.0\n'
    )

    formatted = format_metrics_payload(payload).decode()

    assert 'validator_monitor_oracle_block_height{chain="umee"} 12345678\n' in formatted
    assert 'validator_monitor_oracle_vote_window{chain="umee"} 20160.0\n' in formatted
    assert formatted.startswith("# HELP")
