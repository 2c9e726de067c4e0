from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from zkmarket.services.relay import JobRelay


def test_relay_job_posts_job_id_cid_and_seed() -> None:
    captured: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(status_code=200, json={"message": "ok", "jobId": "3"}, request=request)

    async def run() -> dict[str, Any]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await JobRelay("http://agent.local/receive-job").relay_job(3, "bafy-3", b"\xaa" * 32, client=client)

    result = asyncio.run(run())
    assert result["jobId"] == "3"
    assert captured["url"] == "http://agent.local/receive-job"
    assert captured["body"] == {"jobId": "3", "cid": "bafy-3", "seed": "0x" + "aa" * 32}


def test_relay_job_uses_configured_timeout(monkeypatch) -> None:
    captured: dict[str, Any] = {}

    class FakeAsyncClient:
        async def __aenter__(self) -> "FakeAsyncClient":
            return self

        async def __aexit__(self, exc_type, exc, tb) -> None:
            return None

        async def post(self, url: str, json: dict[str, Any]) -> httpx.Response:
            request = httpx.Request("POST", url)
            return httpx.Response(status_code=200, json={"jobId": json["jobId"]}, request=request)

    def fake_async_client(*args: Any, **kwargs: Any) -> FakeAsyncClient:
        captured.update(kwargs)
        return FakeAsyncClient()

    monkeypatch.setattr(httpx, "AsyncClient", fake_async_client)
    result = asyncio.run(JobRelay("http://agent.local/receive-job", timeout_seconds=2.5).relay_job(9, "c", b"\x00"))

    assert captured["timeout"] == 2.5
    assert result == {"jobId": "9"}
