from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from zkmarket.core.config import Settings
from zkmarket.core.errors import GasEstimationError, LedgerQueryError, LedgerTransactionError, StageTimeoutError
from zkmarket.services.contracts import CONTRACT_ABIS, CREDIT_TOKEN, JOB_REGISTRY, STAKE_REGISTRY
from zkmarket.services.ledger import ContractCall, LogEntry, TxReceipt

logger = logging.getLogger(__name__)

LEDGER_ERRORS = (Web3Exception, ValueError, OSError)


class Web3Ledger:
    def __init__(
        self,
        w3: AsyncWeb3,
        account: LocalAccount,
        addresses: dict[str, str],
        *,
        chain_id: int,
        receipt_timeout_seconds: float = 120.0,
        receipt_poll_seconds: float = 0.5,
    ) -> None:
        self._w3 = w3
        self._account = account
        self._chain_id = chain_id
        self._receipt_timeout_seconds = receipt_timeout_seconds
        self._receipt_poll_seconds = receipt_poll_seconds
        self._addresses = {name: AsyncWeb3.to_checksum_address(addr) for name, addr in addresses.items()}
        self._contracts = {
            name: w3.eth.contract(address=addr, abi=CONTRACT_ABIS[name]) for name, addr in self._addresses.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings, private_key: str) -> Web3Ledger:
        w3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url, request_kwargs={"timeout": 30}))
        addresses = {
            CREDIT_TOKEN: settings.credit_token_address,
            JOB_REGISTRY: settings.job_registry_address,
            STAKE_REGISTRY: settings.stake_registry_address,
        }
        return cls(
            w3,
            Account.from_key(private_key),
            addresses,
            chain_id=settings.chain_id,
            receipt_timeout_seconds=settings.receipt_timeout_seconds,
        )

    @property
    def address(self) -> str:
        return self._account.address

    def contract_address(self, contract: str) -> str:
        return self._addresses[contract]

    async def read(self, call: ContractCall) -> Any:
        try:
            return await self._function(call).call()
        except LEDGER_ERRORS as exc:
            raise LedgerQueryError(f"{call.describe()} query failed: {exc}") from exc

    async def estimate_gas(self, call: ContractCall) -> int:
        try:
            return int(await self._function(call).estimate_gas({"from": self.address}))
        except LEDGER_ERRORS as exc:
            raise GasEstimationError(f"{call.describe()}: {exc}") from exc

    async def transact(self, call: ContractCall, *, gas: int | None = None) -> TxReceipt:
        try:
            params: dict[str, Any] = {
                "from": self.address,
                "nonce": await self._w3.eth.get_transaction_count(self.address, "pending"),
                "chainId": self._chain_id,
            }
            if gas is not None:
                params["gas"] = gas
            # Without an explicit gas limit build_transaction runs its own estimate.
            tx = await self._function(call).build_transaction(params)
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except LEDGER_ERRORS as exc:
            raise LedgerTransactionError(f"{call.describe()} was not sent: {exc}") from exc

        sent_hash = tx_hash.to_0x_hex()
        logger.info("sent %s tx=%s gas=%s", call.describe(), sent_hash, tx.get("gas"))
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._receipt_timeout_seconds,
                poll_latency=self._receipt_poll_seconds,
            )
        except TimeExhausted as exc:
            raise StageTimeoutError(f"{call.function} receipt", f"tx={sent_hash}") from exc
        except LEDGER_ERRORS as exc:
            raise LedgerTransactionError(f"{call.describe()} receipt unavailable: {exc}", tx_hash=sent_hash) from exc
        return TxReceipt(
            tx_hash=HexBytes(receipt["transactionHash"]).to_0x_hex(),
            success=receipt["status"] == 1,
            gas_used=int(receipt["gasUsed"]),
            gas_limit=tx.get("gas"),
            logs=tuple(_to_log_entry(log) for log in receipt["logs"]),
        )

    async def latest_timestamp(self) -> int:
        try:
            block = await self._w3.eth.get_block("latest")
        except LEDGER_ERRORS as exc:
            raise LedgerQueryError(f"latest block query failed: {exc}") from exc
        return int(block["timestamp"])

    async def block_number(self) -> int:
        try:
            return int(await self._w3.eth.block_number)
        except LEDGER_ERRORS as exc:
            raise LedgerQueryError(f"block number query failed: {exc}") from exc

    async def block_hash(self, number: int) -> bytes:
        try:
            block = await self._w3.eth.get_block(number)
        except LEDGER_ERRORS as exc:
            raise LedgerQueryError(f"block {number} query failed: {exc}") from exc
        return bytes(block["hash"])

    async def get_logs(self, contract: str, topic0: bytes, from_block: int, to_block: int) -> list[LogEntry]:
        try:
            logs = await self._w3.eth.get_logs(
                {
                    "address": self._addresses[contract],
                    "topics": [HexBytes(topic0).to_0x_hex()],
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            )
        except LEDGER_ERRORS as exc:
            raise LedgerQueryError(f"{contract} logs {from_block}-{to_block} query failed: {exc}") from exc
        return [_to_log_entry(log) for log in logs]

    def _function(self, call: ContractCall) -> Any:
        contract = self._contracts[call.contract]
        return getattr(contract.functions, call.function)(*call.args)


def _to_log_entry(log: Any) -> LogEntry:
    block_number = log.get("blockNumber")
    return LogEntry(
        address=str(log["address"]),
        topics=tuple(bytes(topic) for topic in log["topics"]),
        data=bytes(log["data"]),
        block_number=int(block_number) if block_number is not None else None,
    )
