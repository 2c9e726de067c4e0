from __future__ import annotations

import logging

from zkmarket.core.errors import (
    InsufficientBalanceError,
    StakeStillInsufficientError,
    StakeTransactionRevertedError,
)
from zkmarket.jobs.finality import FinalityPolicy, await_finality
from zkmarket.schemas.jobs import StakeRecord
from zkmarket.services import contracts
from zkmarket.services.ledger import LedgerClient

logger = logging.getLogger(__name__)


class StakeManager:
    def __init__(self, ledger: LedgerClient, *, policy: FinalityPolicy | None = None, enabled: bool = True) -> None:
        self.ledger = ledger
        self.policy = policy or FinalityPolicy()
        self.enabled = enabled

    async def get_stake(self, provider: str) -> StakeRecord:
        raw = await self.ledger.read(contracts.get_stake(provider))
        return contracts.decode_stake(provider, raw)

    async def ensure_stake(self, required_amount: int) -> StakeRecord | None:
        """Make sure the bound provider holds at least ``required_amount`` in stake.

        Returns None when staking is disabled (stake registry at address zero).
        Sends approve then stake only when the current record falls short.
        """
        if not self.enabled:
            logger.info("staking disabled; skipping stake check")
            return None

        provider = self.ledger.address
        record = await self.get_stake(provider)
        if record.meets(required_amount):
            logger.info("stake already sufficient provider=%s staked=%d", provider, record.staked_amount)
            return record

        shortfall = required_amount - (record.staked_amount if record.exists else 0)
        balance = int(await self.ledger.read(contracts.balance_of(provider)))
        if balance < shortfall:
            raise InsufficientBalanceError(
                f"provider {provider} balance {balance} below stake shortfall {shortfall} "
                f"(required {required_amount})"
            )

        logger.info(
            "staking provider=%s current=%d required=%d",
            provider,
            record.staked_amount,
            required_amount,
        )
        stake_registry = self.ledger.contract_address(contracts.STAKE_REGISTRY)
        approval = await self.ledger.transact(contracts.approve(stake_registry, shortfall))
        if not approval.success:
            raise StakeTransactionRevertedError("stake allowance grant reverted", tx_hash=approval.tx_hash)

        staked = await self.ledger.transact(contracts.stake(shortfall))
        if not staked.success:
            raise StakeTransactionRevertedError("stake transaction reverted", tx_hash=staked.tx_hash)

        finality = await await_finality(
            lambda: self.get_stake(provider),
            lambda current: current.meets(required_amount),
            stage="stake",
            policy=self.policy,
        )
        if not finality.reached:
            raise StakeStillInsufficientError(
                f"stake for {provider} is {finality.value.staked_amount} after staking, "
                f"required {required_amount}"
            )
        logger.info("stake confirmed provider=%s staked=%d", provider, finality.value.staked_amount)
        return finality.value
