from __future__ import annotations

import logging

from zkmarket.core.errors import GasEstimationError
from zkmarket.services.ledger import ContractCall, LedgerClient

logger = logging.getLogger(__name__)

DEFAULT_MARGIN_PERCENT = 20
ACCEPT_FALLBACK_GAS = 300_000
SUBMIT_FALLBACK_GAS = 3_000_000


async def budget_gas(
    ledger: LedgerClient,
    call: ContractCall,
    *,
    fallback: int,
    margin_percent: int = DEFAULT_MARGIN_PERCENT,
) -> int:
    if fallback <= 0:
        raise ValueError("fallback gas budget must be positive")
    try:
        estimate = await ledger.estimate_gas(call)
    except GasEstimationError as exc:
        logger.warning("gas estimation failed for %s; using fallback=%d: %s", call.describe(), fallback, exc)
        return fallback

    if estimate <= 0:
        logger.warning("gas estimate for %s was %d; using fallback=%d", call.describe(), estimate, fallback)
        return fallback
    return estimate * (100 + margin_percent) // 100
