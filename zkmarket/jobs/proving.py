from __future__ import annotations

import logging

from zkmarket.core.errors import (
    JournalMismatchError,
    LocalVerificationFailedError,
    ProverError,
    ProvingFailedError,
    ReceiptVerificationError,
)
from zkmarket.jobs.guest import compute_outputs, outputs_consistent
from zkmarket.schemas.proofs import JobInputs, JobOutputs, ProofArtifact, ReceiptKind
from zkmarket.services.prover import Prover

logger = logging.getLogger(__name__)


class ProofGenerator:
    def __init__(
        self,
        prover: Prover,
        *,
        image_id: bytes,
        receipt_kind: ReceiptKind = ReceiptKind.GROTH16,
        verifier_selector: bytes = b"",
    ) -> None:
        self.prover = prover
        self.image_id = image_id
        self.receipt_kind = receipt_kind
        self.verifier_selector = verifier_selector

    async def generate_proof(self, inputs: JobInputs) -> ProofArtifact:
        logger.info(
            "proving image_batch=%d bytes model_weights=%d bytes kind=%s",
            len(inputs.image_batch_data),
            len(inputs.model_weights_data),
            self.receipt_kind.value,
        )
        try:
            receipt = await self.prover.prove(inputs, receipt_kind=self.receipt_kind)
        except ProverError as exc:
            raise ProvingFailedError(str(exc)) from exc

        try:
            await self.prover.verify(receipt, self.image_id)
        except ReceiptVerificationError as exc:
            raise LocalVerificationFailedError(str(exc)) from exc

        try:
            outputs = JobOutputs.from_journal(receipt.journal)
        except ValueError as exc:
            raise LocalVerificationFailedError(f"cannot decode journal: {exc}") from exc
        self._check_outputs(inputs, outputs)

        logger.info(
            "proof verified locally computation_output_hash=0x%s",
            outputs.computation_output_hash.hex(),
        )
        return ProofArtifact(outputs=outputs, receipt=receipt, verifier_selector=self.verifier_selector)

    @staticmethod
    def _check_outputs(inputs: JobInputs, outputs: JobOutputs) -> None:
        if not outputs_consistent(outputs):
            raise JournalMismatchError("computation output hash is not the hash of the image and weights hashes")
        expected = compute_outputs(inputs)
        for field in ("image_batch_hash", "model_weights_hash", "computation_output_hash"):
            if getattr(outputs, field) != getattr(expected, field):
                raise JournalMismatchError(f"{field} in journal does not match the inputs")
