"""Storage layer for persistent data."""

from zkmixer.storage.database import (
    DatabaseManager,
    CommitmentRecord,
    MerkleRoot,
    Nullifier,
    MixerMeta,
    Base,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "DatabaseManager",
    "CommitmentRecord",
    "MerkleRoot",
    "Nullifier",
    "MixerMeta",
    "Base",
    "get_db_manager",
    "reset_db_manager",
]
