from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from eth_abi import decode as abi_decode
from web3 import Web3

from zkmarket.jobs.events import event_topic, topic_to_address
from zkmarket.services import contracts
from zkmarket.services.ledger import LedgerClient, LogEntry

logger = logging.getLogger(__name__)

MAX_BLOCK_RANGE = 2_000
MAX_HANDLER_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class JobCreatedEvent:
    job_id: int
    client: str
    content_id: str
    reward: int
    deadline: int
    block_number: int


def decode_job_created(log: LogEntry) -> JobCreatedEvent:
    if len(log.topics) < 3 or log.topics[0] != event_topic(contracts.JOB_CREATED_EVENT):
        raise ValueError("log is not a JobCreated event")
    if log.block_number is None:
        raise ValueError("JobCreated log has no block number")
    content_id, reward, deadline = abi_decode(["string", "uint256", "uint256"], log.data)
    return JobCreatedEvent(
        job_id=int.from_bytes(log.topics[1], "big"),
        client=topic_to_address(log.topics[2]),
        content_id=content_id,
        reward=int(reward),
        deadline=int(deadline),
        block_number=log.block_number,
    )


def derive_job_seed(previous_block_hash: bytes, job_id: int, provider: str) -> bytes:
    """keccak256(blockhash(n - 1) || jobId || provider), solidity-packed."""
    return bytes(
        Web3.solidity_keccak(
            ["bytes32", "uint256", "address"],
            [previous_block_hash, job_id, Web3.to_checksum_address(provider)],
        )
    )


class JobCreatedWatcher:
    def __init__(
        self,
        ledger: LedgerClient,
        *,
        start_block: int | None = None,
        max_block_range: int = MAX_BLOCK_RANGE,
        max_handler_attempts: int = MAX_HANDLER_ATTEMPTS,
    ) -> None:
        self.ledger = ledger
        self.next_block = start_block
        self.max_block_range = max_block_range
        self.max_handler_attempts = max_handler_attempts
        self._retry: list[JobCreatedEvent] = []
        self._attempts: dict[int, int] = {}

    async def poll(self) -> list[JobCreatedEvent]:
        """Fetch JobCreated events up to the chain head.

        The block cursor only moves once every range has been fetched, so a
        failed RPC call leaves the whole window to be fetched again.
        """
        head = await self.ledger.block_number()
        cursor = head if self.next_block is None else self.next_block
        events: list[JobCreatedEvent] = []
        topic0 = event_topic(contracts.JOB_CREATED_EVENT)
        while cursor <= head:
            to_block = min(head, cursor + self.max_block_range - 1)
            logs = await self.ledger.get_logs(contracts.JOB_REGISTRY, topic0, cursor, to_block)
            for log in logs:
                try:
                    events.append(decode_job_created(log))
                except ValueError as exc:
                    logger.warning("skipping undecodable JobCreated log in block %s: %s", log.block_number, exc)
            cursor = to_block + 1
        self.next_block = cursor
        return events

    async def seed_for(self, event: JobCreatedEvent, provider: str) -> bytes:
        previous_hash = await self.ledger.block_hash(event.block_number - 1)
        return derive_job_seed(previous_hash, event.job_id, provider)

    async def watch(
        self,
        handler: Callable[[JobCreatedEvent], Awaitable[None]],
        *,
        poll_interval_seconds: float,
        max_backoff_seconds: float = 60.0,
        stop: asyncio.Event | None = None,
    ) -> None:
        stop = stop or asyncio.Event()
        logger.info("listening for JobCreated events from block %s", self.next_block)
        backoff = poll_interval_seconds
        while not stop.is_set():
            try:
                events = self._retry + await self.poll()
                self._retry = []
                for event in events:
                    await self._dispatch(handler, event)
                delay = backoff = poll_interval_seconds
            except Exception as exc:
                jitter = random.uniform(0.0, 0.5)
                delay = min(backoff * (2.0 + jitter), max_backoff_seconds)
                logger.exception("watch iteration failed: %s; retry in %.1fs", exc, delay)
                backoff = delay
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

    async def _dispatch(self, handler: Callable[[JobCreatedEvent], Awaitable[None]], event: JobCreatedEvent) -> None:
        logger.info(
            "job created id=%d client=%s cid=%s deadline=%d",
            event.job_id,
            event.client,
            event.content_id,
            event.deadline,
        )
        try:
            await handler(event)
        except Exception:
            attempts = self._attempts.get(event.job_id, 0) + 1
            if attempts >= self.max_handler_attempts:
                self._attempts.pop(event.job_id, None)
                logger.exception("dropping job %d after %d failed deliveries", event.job_id, attempts)
                return
            self._attempts[event.job_id] = attempts
            self._retry.append(event)
            logger.exception("delivery of job %d failed (attempt %d); retrying next cycle", event.job_id, attempts)
            return
        self._attempts.pop(event.job_id, None)
