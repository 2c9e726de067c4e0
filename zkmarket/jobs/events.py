from __future__ import annotations

from collections.abc import Iterable

from web3 import Web3

from zkmarket.core.errors import JobIdNotFoundError
from zkmarket.services.contracts import same_address
from zkmarket.services.ledger import LogEntry


def event_topic(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature))


def matching_logs(logs: Iterable[LogEntry], signature: str, *, address: str | None = None) -> list[LogEntry]:
    topic0 = event_topic(signature)
    matched: list[LogEntry] = []
    for log in logs:
        if not log.topics or log.topics[0] != topic0:
            continue
        if address is not None and not same_address(log.address, address):
            continue
        matched.append(log)
    return matched


def extract_indexed_uint(
    logs: Iterable[LogEntry],
    signature: str,
    *,
    position: int = 1,
    address: str | None = None,
) -> int:
    """Return indexed topic ``position`` of the first ``signature`` event as an integer."""
    for log in matching_logs(logs, signature, address=address):
        if len(log.topics) > position:
            return int.from_bytes(log.topics[position], "big")
    raise JobIdNotFoundError(f"no {signature} event with topic {position} in transaction logs")


def topic_to_address(topic: bytes) -> str:
    return Web3.to_checksum_address(topic[-20:])
