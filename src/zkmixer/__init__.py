"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ZK-Mixer Team"
__description__ = "ZK-Mixer: fixed-denomination mixer over a Merkle commitment accumulator"

from .core.merkle_tree import MerkleAccumulator, MerklePath
from .core.root_history import RootHistory
from .core.nullifier import NullifierRegistry
from .core.commitment import Note
from .core.verifier import VerificationGateway, PublicInputs
from .core.mixer import ZKMixer, WithdrawalRequest

__all__ = [
    "MerkleAccumulator",
    "MerklePath",
    "RootHistory",
    "NullifierRegistry",
    "Note",
    "VerificationGateway",
    "PublicInputs",
    "ZKMixer",
    "WithdrawalRequest",
]
