from __future__ import annotations

import logging

from zkmarket.core.errors import JobNotSettleableError, SettlementRevertedError
from zkmarket.jobs.finality import FinalityPolicy, await_finality
from zkmarket.jobs.gas import DEFAULT_MARGIN_PERCENT, SUBMIT_FALLBACK_GAS, budget_gas
from zkmarket.schemas.jobs import JobStatus, SubmissionReceipt
from zkmarket.schemas.proofs import SealPayload
from zkmarket.services import contracts
from zkmarket.services.ledger import LedgerClient

logger = logging.getLogger(__name__)


class SettlementSubmitter:
    def __init__(
        self,
        ledger: LedgerClient,
        *,
        policy: FinalityPolicy | None = None,
        fallback_gas: int = SUBMIT_FALLBACK_GAS,
        margin_percent: int = DEFAULT_MARGIN_PERCENT,
    ) -> None:
        self.ledger = ledger
        self.policy = policy or FinalityPolicy()
        self.fallback_gas = fallback_gas
        self.margin_percent = margin_percent

    async def provider_balance(self) -> int:
        return int(await self.ledger.read(contracts.balance_of(self.ledger.address)))

    async def submit_and_settle(self, job_id: int, payload: SealPayload, result_content_id: str) -> SubmissionReceipt:
        provider = self.ledger.address
        job = contracts.decode_job(job_id, await self.ledger.read(contracts.get_job(job_id)))
        if job.status is not JobStatus.ACCEPTED or not contracts.same_address(job.provider, provider):
            raise JobNotSettleableError(
                f"job {job_id} is {job.status.name} with provider {job.provider}, expected ACCEPTED by {provider}"
            )

        balance_before = await self.provider_balance()
        call = contracts.submit_proof_and_claim(job_id, payload.seal, payload.journal_commitment, result_content_id)
        gas = await budget_gas(self.ledger, call, fallback=self.fallback_gas, margin_percent=self.margin_percent)
        receipt = await self.ledger.transact(call, gas=gas)
        if not receipt.success:
            raise SettlementRevertedError(f"submit-proof-and-claim for job {job_id} reverted", tx_hash=receipt.tx_hash)
        logger.info("proof accepted job=%d gas_used=%d tx=%s", job_id, receipt.gas_used, receipt.tx_hash)

        finality = await await_finality(
            self.provider_balance,
            lambda balance: balance > balance_before,
            stage="settle",
            policy=self.policy,
        )
        if not finality.reached:
            logger.warning(
                "reward not received for job=%d: balance %d -> %d after tx=%s",
                job_id,
                balance_before,
                finality.value,
                receipt.tx_hash,
            )
        else:
            logger.info("reward received job=%d delta=%d", job_id, finality.value - balance_before)

        return SubmissionReceipt(
            transaction_hash=receipt.tx_hash,
            success=receipt.success,
            gas_used=receipt.gas_used,
            gas_budget=gas,
            balance_before=balance_before,
            balance_after=finality.value,
            reward_received=finality.reached,
        )
