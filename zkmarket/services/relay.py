from __future__ import annotations

from typing import Any

import httpx


class JobRelay:
    """Forwards newly created jobs to a provider agent."""

    def __init__(self, agent_url: str, *, timeout_seconds: float = 10.0) -> None:
        self.agent_url = agent_url
        self.timeout_seconds = timeout_seconds

    async def relay_job(
        self,
        job_id: int,
        content_id: str,
        seed: bytes,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> dict[str, Any]:
        payload = {"jobId": str(job_id), "cid": content_id, "seed": "0x" + seed.hex()}
        if client is not None:
            response = await client.post(self.agent_url, json=payload)
            response.raise_for_status()
            return response.json()
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as temp_client:
            response = await temp_client.post(self.agent_url, json=payload)
            response.raise_for_status()
            return response.json()
