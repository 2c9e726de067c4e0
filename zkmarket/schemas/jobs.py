from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(IntEnum):
    CREATED = 0
    ACCEPTED = 1
    PROVEN = 2
    PAID = 3
    EXPIRED = 4


class Job(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: int
    client: str
    provider: str | None = None
    content_id: str
    reward: int
    deadline: int
    status: JobStatus
    method_commitment: bytes = Field(min_length=32, max_length=32)

    def is_claimed(self) -> bool:
        return self.provider is not None


class StakeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider_address: str
    staked_amount: int = 0
    exists: bool = False

    def meets(self, required_amount: int) -> bool:
        return self.exists and self.staked_amount >= required_amount


class SubmissionReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_hash: str
    success: bool
    gas_used: int
    gas_budget: int
    balance_before: int
    balance_after: int
    reward_received: bool

    @property
    def balance_delta(self) -> int:
        return self.balance_after - self.balance_before


class JobRequest(BaseModel):
    """One end-to-end run: either a new job to create or an existing job id."""

    content_id: str
    reward: int = Field(ge=0)
    deadline: int | None = None
    deadline_seconds: int = 86_400
    image_batch: bytes
    model_weights: bytes
    result_content_id: str = ""
    job_id: int | None = None
