from __future__ import annotations

from web3 import Web3

from zkmarket.core.errors import UnexpectedProofVariantError
from zkmarket.schemas.proofs import ProofArtifact, ReceiptKind, SealPayload


def journal_commitment(journal: bytes) -> bytes:
    return bytes(Web3.keccak(journal))


def extract_seal(artifact: ProofArtifact) -> SealPayload:
    """Reduce a SNARK-wrapped artifact to the on-chain verifier payload.

    The seal is the verifier selector (when configured) followed by the
    groth16 seal. The commitment is keccak256 over the raw journal bytes.
    """
    receipt = artifact.receipt
    if receipt.kind is not ReceiptKind.GROTH16:
        raise UnexpectedProofVariantError(
            f"expected a {ReceiptKind.GROTH16.value} receipt, got {receipt.kind.value}"
        )
    return SealPayload(
        seal=artifact.verifier_selector + receipt.seal,
        journal_commitment=journal_commitment(receipt.journal),
    )
