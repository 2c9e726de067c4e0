from __future__ import annotations

import hashlib

from zkmarket.schemas.proofs import JobInputs, JobOutputs


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def chain_hash(image_batch_hash: bytes, model_weights_hash: bytes) -> bytes:
    return sha256(image_batch_hash + model_weights_hash)


def compute_outputs(inputs: JobInputs) -> JobOutputs:
    """Host-side mirror of the guest pipeline."""
    image_hash = sha256(inputs.image_batch_data)
    weights_hash = sha256(inputs.model_weights_data)
    return JobOutputs(
        image_batch_hash=image_hash,
        model_weights_hash=weights_hash,
        computation_output_hash=chain_hash(image_hash, weights_hash),
    )


def outputs_consistent(outputs: JobOutputs) -> bool:
    return outputs.computation_output_hash == chain_hash(outputs.image_batch_hash, outputs.model_weights_hash)
