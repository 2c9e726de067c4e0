from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from opentelemetry import trace

from zkmarket.core.config import Settings
from zkmarket.core.errors import StageOrderError
from zkmarket.core.telemetry import bind_job
from zkmarket.jobs.finality import FinalityPolicy
from zkmarket.jobs.proving import ProofGenerator
from zkmarket.jobs.registry import JobRegistryClient
from zkmarket.jobs.seal import extract_seal
from zkmarket.jobs.settlement import SettlementSubmitter
from zkmarket.jobs.staking import StakeManager
from zkmarket.schemas.jobs import Job, JobRequest, StakeRecord, SubmissionReceipt
from zkmarket.schemas.proofs import JobInputs, ProofArtifact, SealPayload
from zkmarket.services.ledger import LedgerClient
from zkmarket.services.prover import Prover

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class Stage(IntEnum):
    PENDING = 0
    STAKE = 1
    CREATE = 2
    ACCEPT = 3
    PROVE = 4
    SEAL = 5
    SETTLE = 6
    DONE = 7


@dataclass(slots=True)
class PipelineResult:
    job_id: int
    stake: StakeRecord | None
    job: Job
    artifact: ProofArtifact
    payload: SealPayload
    receipt: SubmissionReceipt


class JobPipeline:
    """Runs one job end-to-end: stake, create, accept, prove, seal, settle.

    Stages only move forward; each instance handles a single job.
    """

    def __init__(
        self,
        *,
        stake_manager: StakeManager,
        requester_registry: JobRegistryClient,
        provider_registry: JobRegistryClient,
        proof_generator: ProofGenerator,
        submitter: SettlementSubmitter,
        required_stake: int,
        method_commitment: bytes,
    ) -> None:
        self.stake_manager = stake_manager
        self.requester_registry = requester_registry
        self.provider_registry = provider_registry
        self.proof_generator = proof_generator
        self.submitter = submitter
        self.required_stake = required_stake
        self.method_commitment = method_commitment
        self.stage = Stage.PENDING

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        requester: LedgerClient,
        provider: LedgerClient,
        prover: Prover,
    ) -> JobPipeline:
        policy = FinalityPolicy(
            max_wait_seconds=settings.finality_max_wait_seconds,
            initial_interval_seconds=settings.finality_initial_interval_seconds,
            backoff=settings.finality_backoff,
            max_interval_seconds=settings.finality_max_interval_seconds,
        )
        return cls(
            stake_manager=StakeManager(provider, policy=policy, enabled=settings.staking_enabled),
            requester_registry=JobRegistryClient(requester, policy=policy),
            provider_registry=JobRegistryClient(
                provider,
                policy=policy,
                fallback_gas=settings.accept_fallback_gas,
                margin_percent=settings.gas_margin_percent,
            ),
            proof_generator=ProofGenerator(
                prover,
                image_id=settings.method_id_bytes,
                verifier_selector=settings.verifier_selector_bytes,
            ),
            submitter=SettlementSubmitter(
                provider,
                policy=policy,
                fallback_gas=settings.submit_fallback_gas,
                margin_percent=settings.gas_margin_percent,
            ),
            required_stake=settings.required_stake,
            method_commitment=settings.method_id_bytes,
        )

    def _enter(self, stage: Stage) -> None:
        if stage <= self.stage:
            raise StageOrderError(f"cannot enter {stage.name} after {self.stage.name}")
        self.stage = stage

    async def run(self, request: JobRequest) -> PipelineResult:
        with tracer.start_as_current_span("pipeline.stake"):
            self._enter(Stage.STAKE)
            stake = await self.stake_manager.ensure_stake(self.required_stake)

        with tracer.start_as_current_span("pipeline.create") as span:
            self._enter(Stage.CREATE)
            if request.job_id is None:
                deadline = request.deadline
                if deadline is None:
                    now = await self.requester_registry.ledger.latest_timestamp()
                    deadline = now + request.deadline_seconds
                job_id = await self.requester_registry.create_job(
                    request.content_id,
                    request.reward,
                    deadline,
                    self.method_commitment,
                )
            else:
                job_id = request.job_id
                logger.info("using existing job id=%d", job_id)
            span.set_attribute("job.id", job_id)
            bind_job(job_id)

        with tracer.start_as_current_span("pipeline.accept") as span:
            span.set_attribute("job.id", job_id)
            self._enter(Stage.ACCEPT)
            job = await self.provider_registry.accept_job(job_id)

        with tracer.start_as_current_span("pipeline.prove") as span:
            span.set_attribute("job.id", job_id)
            self._enter(Stage.PROVE)
            artifact = await self.proof_generator.generate_proof(
                JobInputs(image_batch_data=request.image_batch, model_weights_data=request.model_weights)
            )

        with tracer.start_as_current_span("pipeline.seal"):
            self._enter(Stage.SEAL)
            payload = extract_seal(artifact)

        with tracer.start_as_current_span("pipeline.settle") as span:
            span.set_attribute("job.id", job_id)
            self._enter(Stage.SETTLE)
            receipt = await self.submitter.submit_and_settle(job_id, payload, request.result_content_id)
            span.set_attribute("settlement.reward_received", receipt.reward_received)

        self._enter(Stage.DONE)
        return PipelineResult(
            job_id=job_id,
            stake=stake,
            job=job,
            artifact=artifact,
            payload=payload,
            receipt=receipt,
        )
