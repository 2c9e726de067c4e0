from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

HASH_SIZE = 32
JOURNAL_WORD_SIZE = 4
JOURNAL_SIZE = 3 * HASH_SIZE * JOURNAL_WORD_SIZE


class ReceiptKind(str, Enum):
    COMPOSITE = "composite"
    SUCCINCT = "succinct"
    GROTH16 = "groth16"


class JobInputs(BaseModel):
    image_batch_data: bytes
    model_weights_data: bytes


class JobOutputs(BaseModel):
    """Public outputs committed by the guest.

    The journal uses the zkVM serde layout: every byte of a fixed array is
    written as its own little-endian u32 word, so three 32-byte hashes take
    384 bytes.
    """

    model_config = ConfigDict(frozen=True)

    image_batch_hash: bytes = Field(min_length=HASH_SIZE, max_length=HASH_SIZE)
    model_weights_hash: bytes = Field(min_length=HASH_SIZE, max_length=HASH_SIZE)
    computation_output_hash: bytes = Field(min_length=HASH_SIZE, max_length=HASH_SIZE)

    @classmethod
    def from_journal(cls, journal: bytes) -> JobOutputs:
        if len(journal) != JOURNAL_SIZE:
            raise ValueError(f"journal must be {JOURNAL_SIZE} bytes, got {len(journal)}")
        values = bytearray()
        for offset in range(0, JOURNAL_SIZE, JOURNAL_WORD_SIZE):
            word = int.from_bytes(journal[offset : offset + JOURNAL_WORD_SIZE], "little")
            if word > 0xFF:
                raise ValueError(f"journal word at offset {offset} is not a byte: {word}")
            values.append(word)
        return cls(
            image_batch_hash=bytes(values[0:HASH_SIZE]),
            model_weights_hash=bytes(values[HASH_SIZE : 2 * HASH_SIZE]),
            computation_output_hash=bytes(values[2 * HASH_SIZE :]),
        )

    def to_journal(self) -> bytes:
        raw = self.image_batch_hash + self.model_weights_hash + self.computation_output_hash
        return b"".join(value.to_bytes(JOURNAL_WORD_SIZE, "little") for value in raw)


class ProverReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ReceiptKind
    seal: bytes
    journal: bytes
    image_id: bytes = Field(min_length=HASH_SIZE, max_length=HASH_SIZE)


class ProofArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    outputs: JobOutputs
    receipt: ProverReceipt
    verifier_selector: bytes = b""


class SealPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    seal: bytes
    journal_commitment: bytes = Field(min_length=HASH_SIZE, max_length=HASH_SIZE)
