from __future__ import annotations

import hashlib

import pytest

from zkmarket.jobs.guest import compute_outputs, outputs_consistent
from zkmarket.schemas.proofs import JOURNAL_SIZE, JobInputs, JobOutputs


def _chained(image: bytes, weights: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(image).digest() + hashlib.sha256(weights).digest()).digest()


@pytest.mark.parametrize(
    ("image", "weights"),
    [
        (bytes([1]) * 1024, bytes([2]) * 2048),
        (b"", b""),
        (b"\x00\xff" * 7, b"weights"),
    ],
)
def test_computation_output_hash_is_hash_of_input_hashes(image: bytes, weights: bytes) -> None:
    outputs = compute_outputs(JobInputs(image_batch_data=image, model_weights_data=weights))

    assert outputs.image_batch_hash == hashlib.sha256(image).digest()
    assert outputs.model_weights_hash == hashlib.sha256(weights).digest()
    assert outputs.computation_output_hash == _chained(image, weights)
    assert outputs_consistent(outputs)


def test_compute_outputs_is_deterministic() -> None:
    inputs = JobInputs(image_batch_data=bytes([1]) * 1024, model_weights_data=bytes([2]) * 2048)
    assert compute_outputs(inputs) == compute_outputs(inputs)


def test_journal_uses_one_word_per_byte() -> None:
    outputs = compute_outputs(JobInputs(image_batch_data=b"a", model_weights_data=b"b"))
    journal = outputs.to_journal()

    assert len(journal) == JOURNAL_SIZE
    assert journal[0:4] == bytes([outputs.image_batch_hash[0], 0, 0, 0])
    assert JobOutputs.from_journal(journal) == outputs


def test_from_journal_rejects_wrong_length_and_wide_words() -> None:
    with pytest.raises(ValueError):
        JobOutputs.from_journal(b"\x00" * 96)

    wide = bytearray(JOURNAL_SIZE)
    wide[1] = 1
    with pytest.raises(ValueError):
        JobOutputs.from_journal(bytes(wide))


def test_outputs_consistent_detects_tampered_output_hash() -> None:
    outputs = compute_outputs(JobInputs(image_batch_data=b"img", model_weights_data=b"w"))
    tampered = outputs.model_copy(update={"computation_output_hash": b"\x00" * 32})
    assert not outputs_consistent(tampered)
