import asyncio
import logging

from zkmarket.core.config import Settings
from zkmarket.core.telemetry import (
    bind_job,
    build_resource,
    configure_logging,
    parse_headers,
    setup_telemetry,
    shutdown_telemetry,
)


def test_parse_headers_skips_malformed_items() -> None:
    assert parse_headers("authorization=Bearer x, broken ,x-tenant = acme") == {
        "authorization": "Bearer x",
        "x-tenant": "acme",
    }
    assert parse_headers(None) == {}


def test_setup_telemetry_disabled_is_noop() -> None:
    runtime = setup_telemetry(Settings(otel_enabled=False))
    assert runtime.enabled is False
    assert runtime.provider is None
    shutdown_telemetry(runtime)


def test_resource_describes_ledger_deployment() -> None:
    settings = Settings(
        chain_id=31337,
        job_registry_address="0x00000000000000000000000000000000000000a1",
        otel_service_name="zkmarket-test",
    )

    attributes = build_resource(settings, "watch").attributes

    assert attributes["service.name"] == "zkmarket-test"
    assert attributes["zkmarket.role"] == "watch"
    assert attributes["ledger.chain_id"] == 31337
    assert attributes["ledger.job_registry"] == "0x00000000000000000000000000000000000000a1"
    assert attributes["ledger.staking_enabled"] is False


def test_log_records_carry_bound_job_id() -> None:
    configure_logging()

    async def run() -> tuple[str, str]:
        before = logging.getLogRecordFactory()("zkmarket", logging.INFO, __file__, 1, "before", None, None)
        bind_job(42)
        after = logging.getLogRecordFactory()("zkmarket", logging.INFO, __file__, 1, "after", None, None)
        return before.job_id, after.job_id

    assert asyncio.run(run()) == ("-", "42")
    unbound = logging.getLogRecordFactory()("zkmarket", logging.INFO, __file__, 1, "outside", None, None)
    assert unbound.job_id == "-"
