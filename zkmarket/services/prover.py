from __future__ import annotations

import asyncio
import json
import logging
import tempfile
from pathlib import Path
from typing import Protocol

from zkmarket.core.errors import ProverError, ReceiptVerificationError, StageTimeoutError
from zkmarket.schemas.proofs import JobInputs, ProverReceipt, ReceiptKind

logger = logging.getLogger(__name__)


class Prover(Protocol):
    async def prove(self, inputs: JobInputs, *, receipt_kind: ReceiptKind) -> ProverReceipt:
        """Run the guest over ``inputs``; raise ProverError on failure."""
        ...

    async def verify(self, receipt: ProverReceipt, image_id: bytes) -> None:
        """Raise ReceiptVerificationError unless ``receipt`` verifies for ``image_id``."""
        ...


class HostCliProver:
    """Drives the zkVM host binary.

    ``<bin> prove --input IN --output OUT --receipt-kind KIND`` reads the
    inputs as JSON (hex byte strings) and writes the receipt as JSON with
    ``kind``, ``seal``, ``journal`` and ``image_id``.
    ``<bin> verify --receipt FILE --image-id HEX`` exits non-zero when the
    receipt does not verify.
    """

    def __init__(self, binary: str, *, timeout_seconds: float = 1800.0, workdir: Path | None = None) -> None:
        self.binary = binary
        self.timeout_seconds = timeout_seconds
        self.workdir = workdir

    async def prove(self, inputs: JobInputs, *, receipt_kind: ReceiptKind) -> ProverReceipt:
        with tempfile.TemporaryDirectory(prefix="zkmarket-prove-", dir=self.workdir) as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / "input.json"
            output_path = tmp_dir / "receipt.json"
            input_path.write_text(
                json.dumps(
                    {
                        "image_batch_data": inputs.image_batch_data.hex(),
                        "model_weights_data": inputs.model_weights_data.hex(),
                    }
                ),
                encoding="utf-8",
            )
            returncode, stderr = await self._run(
                "prove",
                "--input",
                str(input_path),
                "--output",
                str(output_path),
                "--receipt-kind",
                receipt_kind.value,
                stage="proving",
            )
            if returncode != 0:
                raise ProverError(f"prover exited with {returncode}: {stderr.strip()}")
            try:
                payload = json.loads(output_path.read_text(encoding="utf-8"))
                return ProverReceipt(
                    kind=ReceiptKind(payload["kind"]),
                    seal=_from_hex(payload["seal"]),
                    journal=_from_hex(payload["journal"]),
                    image_id=_from_hex(payload["image_id"]),
                )
            except (OSError, KeyError, ValueError) as exc:
                raise ProverError(f"unreadable prover output: {exc}") from exc

    async def verify(self, receipt: ProverReceipt, image_id: bytes) -> None:
        if receipt.image_id != image_id:
            raise ReceiptVerificationError(
                f"receipt image id 0x{receipt.image_id.hex()} does not match expected 0x{image_id.hex()}"
            )
        with tempfile.TemporaryDirectory(prefix="zkmarket-verify-", dir=self.workdir) as tmp:
            receipt_path = Path(tmp) / "receipt.json"
            receipt_path.write_text(
                json.dumps(
                    {
                        "kind": receipt.kind.value,
                        "seal": receipt.seal.hex(),
                        "journal": receipt.journal.hex(),
                        "image_id": receipt.image_id.hex(),
                    }
                ),
                encoding="utf-8",
            )
            returncode, stderr = await self._run(
                "verify",
                "--receipt",
                str(receipt_path),
                "--image-id",
                image_id.hex(),
                stage="verification",
            )
        if returncode != 0:
            raise ReceiptVerificationError(f"receipt verification failed: {stderr.strip()}")

    async def _run(self, *args: str, stage: str) -> tuple[int, str]:
        logger.info("running %s %s", self.binary, args[0])
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProverError(f"cannot start prover {self.binary}: {exc}") from exc
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise StageTimeoutError(stage, f"{self.binary} {args[0]} exceeded {self.timeout_seconds}s") from exc
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise
        if stdout:
            logger.debug("prover stdout: %s", stdout.decode("utf-8", errors="replace").strip())
        return process.returncode or 0, stderr.decode("utf-8", errors="replace")


def _from_hex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)
