"""Custom exceptions for the ZK-Mixer system.

Every protocol failure carries a stable ``code`` naming its error kind. Codes
are what API clients match on; messages are informational only.
"""


class ZKMixerException(Exception):
    """Base exception for all ZK-Mixer errors."""

    code = "ZKMixerError"


class SystemPausedError(ZKMixerException):
    """Raised when deposits or withdrawals are attempted while paused."""

    code = "SystemPaused"


# Deposit Errors
class DepositError(ZKMixerException):
    """Base exception for deposit-path errors."""

    code = "DepositError"


class WrongAmountError(DepositError):
    """Raised when a deposit value differs from the fixed denomination."""

    code = "WrongAmount"


# Merkle Tree Errors
class MerkleTreeError(DepositError):
    """Base exception for Merkle accumulator errors."""

    code = "MerkleTreeError"


class DuplicateCommitmentError(MerkleTreeError):
    """Raised when a commitment is already present in the accumulator."""

    code = "DuplicateCommitment"


class CapacityExceededError(MerkleTreeError):
    """Raised when the accumulator holds 2**depth leaves already."""

    code = "CapacityExceeded"


class InvalidLeafIndexError(MerkleTreeError):
    """Raised when a leaf index is outside the populated range."""

    code = "InvalidLeafIndex"


# Withdrawal Errors
class WithdrawalError(ZKMixerException):
    """Base exception for withdrawal-path errors."""

    code = "WithdrawalError"


class InvalidRecipientError(WithdrawalError):
    """Raised when the recipient is the null address or unparsable."""

    code = "InvalidRecipient"


class NullifierAlreadySpentError(WithdrawalError):
    """Raised when attempting to spend the same nullifier twice."""

    code = "NullifierAlreadySpent"


class InvalidRootError(WithdrawalError):
    """Raised when the proof root is not in the root history window."""

    code = "InvalidRoot"


class InvalidProofError(WithdrawalError):
    """Raised when proof verification fails for any reason."""

    code = "InvalidProof"


class TransferFailedError(WithdrawalError):
    """Raised when the asset transfer to the recipient does not succeed."""

    code = "TransferFailed"


# Administrative Errors
class AdminError(ZKMixerException):
    """Base exception for administrative operations."""

    code = "AdminError"


class UnauthorizedError(AdminError):
    """Raised when a privileged operation is called by a non-owner."""

    code = "Unauthorized"


class InvalidMixerStateError(AdminError):
    """Raised when restored state is inconsistent."""

    code = "InvalidMixerState"


# Storage Errors
class StorageError(ZKMixerException):
    """Base exception for storage errors."""

    code = "StorageError"
