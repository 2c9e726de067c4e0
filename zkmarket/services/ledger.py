from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class ContractCall:
    contract: str
    function: str
    args: tuple[Any, ...] = ()

    def describe(self) -> str:
        return f"{self.contract}.{self.function}"


@dataclass(frozen=True, slots=True)
class LogEntry:
    address: str
    topics: tuple[bytes, ...]
    data: bytes = b""
    block_number: int | None = None


@dataclass(frozen=True, slots=True)
class TxReceipt:
    tx_hash: str
    success: bool
    gas_used: int
    gas_limit: int | None = None
    logs: tuple[LogEntry, ...] = field(default_factory=tuple)


class LedgerClient(Protocol):
    """Ledger access bound to one signing account.

    Every read goes to the ledger; implementations must not cache state
    between calls.
    """

    @property
    def address(self) -> str: ...

    def contract_address(self, contract: str) -> str: ...

    async def read(self, call: ContractCall) -> Any: ...

    async def estimate_gas(self, call: ContractCall) -> int:
        """Return the gas estimate or raise GasEstimationError."""
        ...

    async def transact(self, call: ContractCall, *, gas: int | None = None) -> TxReceipt:
        """Sign, send and wait for the receipt of ``call``.

        Raises StageTimeoutError when the receipt does not arrive in time.
        A reverted transaction is returned with ``success=False``.
        """
        ...

    async def latest_timestamp(self) -> int: ...

    async def block_number(self) -> int: ...

    async def block_hash(self, number: int) -> bytes: ...

    async def get_logs(self, contract: str, topic0: bytes, from_block: int, to_block: int) -> list[LogEntry]: ...
