from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class FinalityPolicy:
    max_wait_seconds: float = 30.0
    initial_interval_seconds: float = 1.0
    backoff: float = 2.0
    max_interval_seconds: float = 8.0

    def intervals(self):
        interval = self.initial_interval_seconds
        while True:
            yield interval
            interval = min(interval * max(self.backoff, 1.0), self.max_interval_seconds)


@dataclass(frozen=True, slots=True)
class Finality(Generic[T]):
    value: T
    reached: bool
    attempts: int
    waited_seconds: float


async def await_finality(
    probe: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    *,
    stage: str,
    policy: FinalityPolicy,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Finality[T]:
    """Poll ``probe`` until ``predicate`` holds or ``policy.max_wait_seconds`` elapses.

    The probe runs once immediately and again after each backoff interval.
    The last observed value is returned either way; callers decide whether
    an unreached condition is an error.
    """
    started = clock()
    attempts = 0
    intervals = policy.intervals()
    while True:
        value = await probe()
        attempts += 1
        waited = clock() - started
        if predicate(value):
            return Finality(value=value, reached=True, attempts=attempts, waited_seconds=waited)

        remaining = policy.max_wait_seconds - waited
        if remaining <= 0:
            logger.info("finality not reached for stage=%s after %d attempts", stage, attempts)
            return Finality(value=value, reached=False, attempts=attempts, waited_seconds=waited)
        await sleep(min(next(intervals), remaining))
