from __future__ import annotations

import asyncio

import pytest

from tests.fakes import PROVIDER, FakeLedger, LedgerState
from zkmarket.jobs.gas import budget_gas
from zkmarket.services import contracts


def test_budget_gas_adds_margin_to_estimate() -> None:
    ledger = FakeLedger(LedgerState(estimate=100_000), PROVIDER)
    gas = asyncio.run(budget_gas(ledger, contracts.accept_job(1), fallback=300_000, margin_percent=20))
    assert gas == 120_000


def test_budget_gas_falls_back_when_estimation_fails() -> None:
    ledger = FakeLedger(LedgerState(estimate_fails=True), PROVIDER)
    gas = asyncio.run(budget_gas(ledger, contracts.accept_job(1), fallback=300_000))
    assert gas == 300_000


def test_budget_gas_falls_back_on_zero_estimate() -> None:
    ledger = FakeLedger(LedgerState(estimate=0), PROVIDER)
    gas = asyncio.run(budget_gas(ledger, contracts.accept_job(1), fallback=250_000))
    assert gas == 250_000


def test_budget_gas_rejects_non_positive_fallback() -> None:
    ledger = FakeLedger(LedgerState(), PROVIDER)
    with pytest.raises(ValueError):
        asyncio.run(budget_gas(ledger, contracts.accept_job(1), fallback=0))
