"""Contract surface consumed by the coordinator.

Call builders keep the argument order the on-chain contracts expect; the
ABI fragments below are the minimum ``Web3Ledger`` needs to encode them.
"""

from __future__ import annotations

from typing import Any

from zkmarket.schemas.jobs import Job, JobStatus, StakeRecord
from zkmarket.services.ledger import ContractCall

CREDIT_TOKEN = "credit_token"
JOB_REGISTRY = "job_registry"
STAKE_REGISTRY = "stake_registry"

JOB_CREATED_EVENT = "JobCreated(uint256,address,string,uint256,uint256)"

ZERO_ADDRESS = "0x" + "0" * 40


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]], mutability: str) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": arg, "type": kind} for arg, kind in inputs],
        "outputs": [{"name": arg, "type": kind} for arg, kind in outputs],
    }


CREDIT_TOKEN_ABI: list[dict[str, Any]] = [
    _fn("balanceOf", [("account", "address")], [("", "uint256")], "view"),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")], "nonpayable"),
]

STAKE_REGISTRY_ABI: list[dict[str, Any]] = [
    _fn("stake", [("amount", "uint256")], [], "nonpayable"),
    _fn("getStake", [("provider", "address")], [("amount", "uint256"), ("exists", "bool")], "view"),
]

JOB_REGISTRY_ABI: list[dict[str, Any]] = [
    _fn(
        "createJob",
        [("cid", "string"), ("reward", "uint256"), ("deadline", "uint256"), ("methodId", "bytes32")],
        [("jobId", "uint256")],
        "nonpayable",
    ),
    _fn("acceptJob", [("jobId", "uint256")], [], "nonpayable"),
    _fn(
        "submitProofAndClaim",
        [("jobId", "uint256"), ("seal", "bytes"), ("journalDigest", "bytes32"), ("resultCid", "string")],
        [],
        "nonpayable",
    ),
    _fn(
        "getJob",
        [("jobId", "uint256")],
        [
            ("client", "address"),
            ("provider", "address"),
            ("cid", "string"),
            ("reward", "uint256"),
            ("deadline", "uint256"),
            ("status", "uint8"),
            ("methodId", "bytes32"),
        ],
        "view",
    ),
    {
        "type": "event",
        "name": "JobCreated",
        "anonymous": False,
        "inputs": [
            {"name": "jobId", "type": "uint256", "indexed": True},
            {"name": "client", "type": "address", "indexed": True},
            {"name": "cid", "type": "string", "indexed": False},
            {"name": "reward", "type": "uint256", "indexed": False},
            {"name": "deadline", "type": "uint256", "indexed": False},
        ],
    },
]

CONTRACT_ABIS: dict[str, list[dict[str, Any]]] = {
    CREDIT_TOKEN: CREDIT_TOKEN_ABI,
    JOB_REGISTRY: JOB_REGISTRY_ABI,
    STAKE_REGISTRY: STAKE_REGISTRY_ABI,
}


def balance_of(account: str) -> ContractCall:
    return ContractCall(CREDIT_TOKEN, "balanceOf", (account,))


def approve(spender: str, amount: int) -> ContractCall:
    return ContractCall(CREDIT_TOKEN, "approve", (spender, int(amount)))


def stake(amount: int) -> ContractCall:
    return ContractCall(STAKE_REGISTRY, "stake", (int(amount),))


def get_stake(provider: str) -> ContractCall:
    return ContractCall(STAKE_REGISTRY, "getStake", (provider,))


def create_job(content_id: str, reward: int, deadline: int, method_commitment: bytes) -> ContractCall:
    if len(method_commitment) != 32:
        raise ValueError("method commitment must be 32 bytes")
    return ContractCall(JOB_REGISTRY, "createJob", (content_id, int(reward), int(deadline), bytes(method_commitment)))


def accept_job(job_id: int) -> ContractCall:
    return ContractCall(JOB_REGISTRY, "acceptJob", (int(job_id),))


def get_job(job_id: int) -> ContractCall:
    return ContractCall(JOB_REGISTRY, "getJob", (int(job_id),))


def submit_proof_and_claim(job_id: int, seal: bytes, journal_commitment: bytes, result_content_id: str) -> ContractCall:
    return ContractCall(
        JOB_REGISTRY,
        "submitProofAndClaim",
        (int(job_id), bytes(seal), bytes(journal_commitment), result_content_id),
    )


def decode_stake(provider: str, raw: Any) -> StakeRecord:
    amount, exists = raw
    return StakeRecord(provider_address=provider, staked_amount=int(amount), exists=bool(exists))


def decode_job(job_id: int, raw: Any) -> Job:
    client, provider, cid, reward, deadline, status, method_id = raw
    return Job(
        job_id=int(job_id),
        client=client,
        provider=None if _is_zero_address(provider) else provider,
        content_id=cid,
        reward=int(reward),
        deadline=int(deadline),
        status=JobStatus(int(status)),
        method_commitment=bytes(method_id),
    )


def same_address(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return False
    return left.lower() == right.lower()


def _is_zero_address(value: str | None) -> bool:
    return not value or int(value, 16) == 0
