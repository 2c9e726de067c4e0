from __future__ import annotations


class CoordinatorError(Exception):
    """Base error for a protocol run."""


class ConfigurationError(CoordinatorError):
    """Raised when environment configuration is missing or malformed."""


class PreconditionError(CoordinatorError):
    """Raised when on-chain state does not allow the next stage."""


class InsufficientBalanceError(PreconditionError):
    """Raised when the provider cannot cover the required stake."""


class StakeStillInsufficientError(PreconditionError):
    """Raised when the stake record does not meet the requirement after staking."""


class JobAlreadyClaimedError(PreconditionError):
    """Raised when another provider already holds the job."""


class JobNotAcceptableError(PreconditionError):
    """Raised when the job is not in a state that can be accepted."""


class JobNotSettleableError(PreconditionError):
    """Raised when the job is not accepted by this provider at settlement time."""


class LedgerTransactionError(CoordinatorError):
    """Raised when a mined transaction reports failure."""

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        if tx_hash:
            message = f"{message} (tx={tx_hash})"
        super().__init__(message)
        self.tx_hash = tx_hash


class StakeTransactionRevertedError(LedgerTransactionError):
    """Raised when the allowance grant or stake transaction reverts."""


class JobCreationRevertedError(LedgerTransactionError):
    """Raised when the reward allowance or create-job transaction reverts."""


class AcceptRejectedError(LedgerTransactionError):
    """Raised when the accept-job transaction reverts."""


class SettlementRevertedError(LedgerTransactionError):
    """Raised when the submit-proof-and-claim transaction reverts."""


class LedgerQueryError(CoordinatorError):
    """Raised when the ledger node cannot answer a read."""


class JobIdNotFoundError(CoordinatorError):
    """Raised when a create-job receipt carries no job creation event."""


class ProofError(CoordinatorError):
    """Base error for proof generation and verification."""


class ProvingFailedError(ProofError):
    """Raised when the prover cannot produce a receipt."""


class LocalVerificationFailedError(ProofError):
    """Raised when a receipt fails local verification."""


class JournalMismatchError(LocalVerificationFailedError):
    """Raised when the committed outputs disagree with the reference pipeline."""


class UnexpectedProofVariantError(CoordinatorError):
    """Raised when a seal is requested from a receipt that is not SNARK-wrapped."""


class StageTimeoutError(CoordinatorError):
    """Raised when a blocking wait exceeds its budget."""

    def __init__(self, stage: str, detail: str | None = None) -> None:
        message = f"stage {stage} timed out"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.stage = stage


class StageOrderError(CoordinatorError):
    """Raised when a pipeline stage is entered out of order or twice."""


class GasEstimationError(Exception):
    """Raised by ledger clients when a gas estimate is unavailable."""


class ProverError(Exception):
    """Raised by prover backends when proving fails."""


class ReceiptVerificationError(Exception):
    """Raised by prover backends when a receipt does not verify."""
