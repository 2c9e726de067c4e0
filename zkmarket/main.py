from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from opentelemetry import trace

from zkmarket.core.config import Settings, load_settings
from zkmarket.core.errors import CoordinatorError
from zkmarket.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from zkmarket.jobs.listener import JobCreatedEvent, JobCreatedWatcher
from zkmarket.jobs.pipeline import JobPipeline, PipelineResult
from zkmarket.schemas.jobs import JobRequest
from zkmarket.services.prover import HostCliProver
from zkmarket.services.relay import JobRelay
from zkmarket.services.web3_ledger import Web3Ledger

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def run_job(settings: Settings, request: JobRequest) -> PipelineResult:
    requester = Web3Ledger.from_settings(settings, settings.requester_private_key.get_secret_value())
    provider = Web3Ledger.from_settings(settings, settings.provider_private_key.get_secret_value())
    prover = HostCliProver(settings.prover_bin, timeout_seconds=settings.prover_timeout_seconds)
    pipeline = JobPipeline.build(settings, requester=requester, provider=provider, prover=prover)

    with tracer.start_as_current_span("coordinator.run_job"):
        result = await pipeline.run(request)

    outputs = result.artifact.outputs
    logger.info("image batch hash: 0x%s", outputs.image_batch_hash.hex())
    logger.info("model weights hash: 0x%s", outputs.model_weights_hash.hex())
    logger.info("computation output hash: 0x%s", outputs.computation_output_hash.hex())
    logger.info(
        "job %d settled tx=%s balance %d -> %d",
        result.job_id,
        result.receipt.transaction_hash,
        result.receipt.balance_before,
        result.receipt.balance_after,
    )
    if not result.receipt.reward_received:
        logger.warning("proof accepted for job %d but no reward reached the provider", result.job_id)
    return result


async def watch_jobs(settings: Settings) -> None:
    provider = Web3Ledger.from_settings(settings, settings.provider_private_key.get_secret_value())
    watcher = JobCreatedWatcher(provider)
    relay = JobRelay(settings.provider_agent_url)

    async def handle(event: JobCreatedEvent) -> None:
        seed = await watcher.seed_for(event, provider.address)
        response = await relay.relay_job(event.job_id, event.content_id, seed)
        logger.info("job %d relayed to provider agent: %s", event.job_id, response)

    await watcher.watch(handle, poll_interval_seconds=settings.watch_poll_interval_seconds)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Coordinate a zero-knowledge compute job on the ledger.")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Create, accept, prove and settle one job")
    run.add_argument("--image", type=Path, required=True, help="Image batch input file")
    run.add_argument("--weights", type=Path, required=True, help="Model weights input file")
    run.add_argument("--content-id", required=True, help="Content identifier of the job inputs")
    run.add_argument("--reward", type=int, required=True, help="Reward in credit token base units")
    run.add_argument("--deadline-seconds", type=int, default=86_400, help="Deadline offset from the latest block")
    run.add_argument("--result-content-id", default="", help="Content identifier of the published result")
    run.add_argument("--job-id", type=int, default=None, help="Accept an existing job instead of creating one")

    commands.add_parser("watch", help="Relay newly created jobs to the provider agent")
    return parser


def _build_request(args: argparse.Namespace) -> JobRequest:
    return JobRequest(
        content_id=args.content_id,
        reward=args.reward,
        deadline_seconds=args.deadline_seconds,
        image_batch=args.image.read_bytes(),
        model_weights=args.weights.read_bytes(),
        result_content_id=args.result_content_id,
        job_id=args.job_id,
    )


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging()
    try:
        settings = load_settings(require_requester=args.command == "run")
    except CoordinatorError as exc:
        logger.error("configuration error: %s", exc)
        return 1

    request: JobRequest | None = None
    if args.command == "run":
        try:
            request = _build_request(args)
        except OSError as exc:
            logger.error("cannot read job input: %s", exc)
            return 1

    telemetry_runtime = setup_telemetry(settings, role=args.command)
    try:
        if request is None:
            asyncio.run(watch_jobs(settings))
        else:
            asyncio.run(run_job(settings, request))
        return 0
    except CoordinatorError as exc:
        logger.error("job run failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        shutdown_telemetry(telemetry_runtime)


if __name__ == "__main__":
    sys.exit(main())
