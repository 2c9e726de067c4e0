from __future__ import annotations

import logging

from zkmarket.core.errors import (
    AcceptRejectedError,
    JobAlreadyClaimedError,
    JobCreationRevertedError,
    JobNotAcceptableError,
    StageTimeoutError,
)
from zkmarket.jobs.events import extract_indexed_uint
from zkmarket.jobs.finality import FinalityPolicy, await_finality
from zkmarket.jobs.gas import ACCEPT_FALLBACK_GAS, DEFAULT_MARGIN_PERCENT, budget_gas
from zkmarket.schemas.jobs import Job, JobStatus
from zkmarket.services import contracts
from zkmarket.services.ledger import LedgerClient

logger = logging.getLogger(__name__)


class JobRegistryClient:
    def __init__(
        self,
        ledger: LedgerClient,
        *,
        policy: FinalityPolicy | None = None,
        fallback_gas: int = ACCEPT_FALLBACK_GAS,
        margin_percent: int = DEFAULT_MARGIN_PERCENT,
        event_signature: str = contracts.JOB_CREATED_EVENT,
    ) -> None:
        self.ledger = ledger
        self.policy = policy or FinalityPolicy()
        self.fallback_gas = fallback_gas
        self.margin_percent = margin_percent
        self.event_signature = event_signature

    async def get_job(self, job_id: int) -> Job:
        raw = await self.ledger.read(contracts.get_job(job_id))
        return contracts.decode_job(job_id, raw)

    async def create_job(self, content_id: str, reward: int, deadline: int, method_commitment: bytes) -> int:
        """Grant the reward allowance, create the job and return its on-chain id.

        The deadline is not checked here; the registry enforces it at
        claim and settlement time.
        """
        registry = self.ledger.contract_address(contracts.JOB_REGISTRY)
        approval = await self.ledger.transact(contracts.approve(registry, reward))
        if not approval.success:
            raise JobCreationRevertedError("reward allowance grant reverted", tx_hash=approval.tx_hash)

        receipt = await self.ledger.transact(contracts.create_job(content_id, reward, deadline, method_commitment))
        if not receipt.success:
            raise JobCreationRevertedError("create-job transaction reverted", tx_hash=receipt.tx_hash)

        job_id = extract_indexed_uint(receipt.logs, self.event_signature, position=1, address=registry)
        logger.info("job created id=%d cid=%s reward=%d deadline=%d tx=%s", job_id, content_id, reward, deadline, receipt.tx_hash)
        return job_id

    async def accept_job(self, job_id: int) -> Job:
        provider = self.ledger.address
        job = await self.get_job(job_id)
        if job.is_claimed():
            raise JobAlreadyClaimedError(f"job {job_id} already claimed by {job.provider}")
        if job.status is not JobStatus.CREATED:
            raise JobNotAcceptableError(f"job {job_id} has status {job.status.name}, expected CREATED")
        now = await self.ledger.latest_timestamp()
        if job.deadline < now:
            raise JobNotAcceptableError(f"job {job_id} deadline {job.deadline} passed at {now}")

        call = contracts.accept_job(job_id)
        gas = await budget_gas(self.ledger, call, fallback=self.fallback_gas, margin_percent=self.margin_percent)
        receipt = await self.ledger.transact(call, gas=gas)
        if not receipt.success:
            raise AcceptRejectedError(f"accept-job for job {job_id} reverted", tx_hash=receipt.tx_hash)
        logger.info("job accepted id=%d provider=%s gas=%d tx=%s", job_id, provider, gas, receipt.tx_hash)

        finality = await await_finality(
            lambda: self.get_job(job_id),
            lambda current: contracts.same_address(current.provider, provider),
            stage="accept",
            policy=self.policy,
        )
        if not finality.reached:
            raise StageTimeoutError("accept", f"job {job_id} not visible as accepted by {provider}")
        return finality.value
