"""
MerkleDrop Exception Hierarchy

All exceptions inherit from MerkleDropError for easy catching.

Claim failures inherit from ClaimError and carry a `retryable` flag so a
relayer can tell "fix the inputs and resubmit" apart from "never resubmit".
"""


class MerkleDropError(Exception):
    """Base exception for all MerkleDrop errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(MerkleDropError):
    """Raised when input data validation fails"""
    pass


class InvalidSignatureLengthError(ValidationError):
    """Raised when a raw signature is not exactly 65 bytes"""
    pass


class ConfigError(MerkleDropError):
    """Raised when configuration is missing or invalid"""
    pass


class LedgerError(MerkleDropError):
    """Raised when claim journal operations fail"""
    pass


class ClaimError(MerkleDropError):
    """Raised when a claim is rejected. Nothing was mutated."""

    retryable: bool = False


class InvalidSignatureError(ClaimError):
    """Recovered signer does not match the recipient, or the encoding is malformed"""

    retryable = True


class AlreadyClaimedError(ClaimError):
    """The recipient has already collected its allocation"""

    retryable = False


class InvalidProofError(ClaimError):
    """Leaf and proof do not recompute the stored root"""

    retryable = True


class TransferFailedError(ClaimError):
    """The asset refused the transfer; the claim was rolled back"""

    retryable = True


class ClaimInProgressError(ClaimError):
    """Another claim on the same ledger has not committed or rolled back yet"""

    retryable = True
