from __future__ import annotations

from typing import Any

import pytest

from zkmarket import main as entrypoint
from zkmarket.core.config import get_settings
from zkmarket.core.errors import AcceptRejectedError


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    for name in ("CREDIT_TOKEN_ADDRESS", "JOB_REGISTRY_ADDRESS", "REQUESTER_PRIVATE_KEY", "PROVIDER_PRIVATE_KEY"):
        monkeypatch.delenv(f"ZKM_{name}", raising=False)
    monkeypatch.setenv("ZKM_OTEL_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _configure(monkeypatch) -> None:
    monkeypatch.setenv("ZKM_CREDIT_TOKEN_ADDRESS", "0x00000000000000000000000000000000000000c1")
    monkeypatch.setenv("ZKM_JOB_REGISTRY_ADDRESS", "0x00000000000000000000000000000000000000a1")
    monkeypatch.setenv("ZKM_REQUESTER_PRIVATE_KEY", "0x" + "11" * 32)
    monkeypatch.setenv("ZKM_PROVIDER_PRIVATE_KEY", "0x" + "22" * 32)


def _run_args(tmp_path) -> list[str]:
    image = tmp_path / "image.bin"
    weights = tmp_path / "weights.bin"
    image.write_bytes(bytes([1]) * 1024)
    weights.write_bytes(bytes([2]) * 2048)
    return ["run", "--image", str(image), "--weights", str(weights), "--content-id", "bafy", "--reward", "10"]


def test_main_exits_non_zero_on_missing_configuration(tmp_path) -> None:
    assert entrypoint.main(_run_args(tmp_path)) == 1


def test_main_builds_request_from_arguments(monkeypatch, tmp_path) -> None:
    _configure(monkeypatch)
    captured: dict[str, Any] = {}

    async def fake_run_job(settings, request):
        captured["request"] = request

    monkeypatch.setattr(entrypoint, "run_job", fake_run_job)

    assert entrypoint.main(_run_args(tmp_path)) == 0
    request = captured["request"]
    assert request.reward == 10
    assert request.image_batch == bytes([1]) * 1024
    assert request.deadline_seconds == 86_400
    assert request.job_id is None


def test_main_reports_protocol_failures(monkeypatch, tmp_path) -> None:
    _configure(monkeypatch)

    async def failing_run_job(settings, request):
        raise AcceptRejectedError("accept-job for job 1 reverted", tx_hash="0xabc")

    monkeypatch.setattr(entrypoint, "run_job", failing_run_job)
    assert entrypoint.main(_run_args(tmp_path)) == 1


def test_main_reports_missing_input_file(monkeypatch, tmp_path, caplog) -> None:
    _configure(monkeypatch)
    called = False

    async def fake_run_job(settings, request):
        nonlocal called
        called = True

    monkeypatch.setattr(entrypoint, "run_job", fake_run_job)
    args = _run_args(tmp_path)
    args[args.index("--weights") + 1] = str(tmp_path / "missing.bin")

    assert entrypoint.main(args) == 1
    assert called is False
    assert "cannot read job input" in caplog.text
