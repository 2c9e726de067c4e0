from __future__ import annotations

import logging
import time
from collections import deque
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ReceiveJobRequest(BaseModel):
    jobId: str | None = None
    cid: str | None = None
    seed: str | None = None


class ReceiveJobResponse(BaseModel):
    message: str
    jobId: str


class AgentStore:
    """In-memory record of jobs acknowledged by this agent."""

    def __init__(self, max_jobs: int = 1000) -> None:
        self.jobs: deque[dict] = deque(maxlen=max_jobs)

    def acknowledge(self, job_id: str, cid: str, seed: str) -> dict:
        record = {
            "jobId": job_id,
            "cid": cid,
            "seed": seed,
            "received_at": datetime.now(timezone.utc),
        }
        self.jobs.append(record)
        return record


STORE = AgentStore()
router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/receive-job", response_model=ReceiveJobResponse)
async def receive_job(payload: ReceiveJobRequest) -> ReceiveJobResponse:
    if not payload.jobId or not payload.cid or not payload.seed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing job data (jobId, cid, or seed)",
        )
    STORE.acknowledge(payload.jobId, payload.cid, payload.seed)
    logger.info("acknowledging job %s seed=%s", payload.jobId, payload.seed)
    return ReceiveJobResponse(message="Job acknowledged by provider agent", jobId=payload.jobId)


@router.get("/jobs")
async def list_jobs(limit: int = Query(default=20, ge=1, le=1000)) -> list[dict]:
    return list(STORE.jobs)[-limit:]


app = FastAPI(title="zkmarket-provider-agent")


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(router)
