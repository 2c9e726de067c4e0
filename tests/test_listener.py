from __future__ import annotations

import asyncio

import pytest
from web3 import Web3

from tests.fakes import IMAGE_ID, PROVIDER, REQUESTER, FakeLedger, LedgerState, make_ledgers
from zkmarket.jobs.listener import JobCreatedWatcher, decode_job_created, derive_job_seed
from zkmarket.jobs.registry import JobRegistryClient


def _create(state: LedgerState, cid: str) -> int:
    requester, _ = make_ledgers(state)
    return asyncio.run(JobRegistryClient(requester).create_job(cid, 10, state.timestamp + 60, IMAGE_ID))


def test_decode_job_created_reads_topics_and_data() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    job_id = _create(state, "bafy-1")

    event = decode_job_created(state.logs[-1])

    assert event.job_id == job_id
    assert event.client.lower() == REQUESTER
    assert event.content_id == "bafy-1"
    assert event.reward == 10
    assert event.deadline == state.timestamp + 60


def test_watcher_returns_each_new_job_once() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    _, provider = make_ledgers(state)
    watcher = JobCreatedWatcher(provider, start_block=0, max_block_range=3)

    _create(state, "bafy-1")
    first = asyncio.run(watcher.poll())
    _create(state, "bafy-2")
    second = asyncio.run(watcher.poll())

    assert [event.content_id for event in first] == ["bafy-1"]
    assert [event.content_id for event in second] == ["bafy-2"]
    assert asyncio.run(watcher.poll()) == []


def test_derive_job_seed_matches_packed_keccak() -> None:
    previous = bytes.fromhex("11" * 32)
    packed = previous + (7).to_bytes(32, "big") + bytes.fromhex(PROVIDER[2:])
    assert derive_job_seed(previous, 7, PROVIDER) == bytes(Web3.keccak(packed))


def test_seed_uses_parent_block_hash() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    _, provider = make_ledgers(state)
    watcher = JobCreatedWatcher(provider, start_block=0)
    _create(state, "bafy-1")
    (event,) = asyncio.run(watcher.poll())

    seed = asyncio.run(watcher.seed_for(event, PROVIDER))

    parent_hash = (event.block_number - 1).to_bytes(32, "big")
    assert seed == derive_job_seed(parent_hash, event.job_id, PROVIDER)


def test_watch_retries_event_after_handler_failure() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    _, provider = make_ledgers(state)
    watcher = JobCreatedWatcher(provider, start_block=0)
    first = _create(state, "bafy-1")
    second = _create(state, "bafy-2")

    stop = asyncio.Event()
    seen: list[int] = []
    failures: list[int] = []

    async def handler(event) -> None:
        if not failures:
            failures.append(event.job_id)
            raise RuntimeError("transient rpc failure")
        seen.append(event.job_id)
        if len(seen) == 2:
            stop.set()

    asyncio.run(asyncio.wait_for(watcher.watch(handler, poll_interval_seconds=0.01, stop=stop), timeout=5))

    assert failures == [first]
    assert sorted(seen) == [first, second]


def test_watch_drops_event_after_repeated_failures() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    _, provider = make_ledgers(state)
    watcher = JobCreatedWatcher(provider, start_block=0, max_handler_attempts=2)
    _create(state, "bafy-1")

    stop = asyncio.Event()
    calls: list[int] = []

    async def handler(event) -> None:
        calls.append(event.job_id)
        if len(calls) == 2:
            stop.set()
        raise RuntimeError("agent unavailable")

    asyncio.run(asyncio.wait_for(watcher.watch(handler, poll_interval_seconds=0.01, stop=stop), timeout=5))

    assert len(calls) == 2
    assert watcher._retry == []


class _FlakyLedger(FakeLedger):
    def __init__(self, state: LedgerState, address: str, failures: int) -> None:
        super().__init__(state, address)
        self.failures = failures

    async def get_logs(self, contract, topic0, from_block, to_block):
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("rpc unavailable")
        return await super().get_logs(contract, topic0, from_block, to_block)


def test_poll_failure_keeps_block_cursor() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    watcher = JobCreatedWatcher(_FlakyLedger(state, PROVIDER, failures=1), start_block=0)
    _create(state, "bafy-1")

    with pytest.raises(ConnectionError):
        asyncio.run(watcher.poll())
    assert watcher.next_block == 0

    assert [event.content_id for event in asyncio.run(watcher.poll())] == ["bafy-1"]


def test_watch_survives_poll_failure() -> None:
    state = LedgerState(balances={REQUESTER: 100})
    watcher = JobCreatedWatcher(_FlakyLedger(state, PROVIDER, failures=1), start_block=0)
    job_id = _create(state, "bafy-1")

    stop = asyncio.Event()
    seen: list[int] = []

    async def handler(event) -> None:
        seen.append(event.job_id)
        stop.set()

    asyncio.run(asyncio.wait_for(watcher.watch(handler, poll_interval_seconds=0.01, stop=stop), timeout=5))

    assert seen == [job_id]
