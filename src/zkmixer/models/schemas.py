"""Pydantic data models for the ZK-Mixer API.

Field elements travel as 0x-prefixed hex strings; amounts as integers in the
smallest unit (wei).
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime

from zkmixer.utils.encoding import hex_to_field


def _field_hex(value: str) -> str:
    hex_to_field(value)
    return value


class DepositRequest(BaseModel):
    """Request model for deposit operations."""
    commitment: str = Field(..., description="Commitment H(secret, nullifier_secret) (hex)")
    value: int = Field(..., ge=0, description="Amount sent with the deposit")

    @field_validator("commitment")
    @classmethod
    def check_commitment(cls, value: str) -> str:
        return _field_hex(value)


class DepositResponse(BaseModel):
    """Response model for deposit operations."""
    commitment: str = Field(..., description="Commitment (hex)")
    leaf_index: int = Field(..., description="Index in Merkle tree")
    root: str = Field(..., description="Merkle root after insertion (hex)")
    timestamp: datetime


class WithdrawalRequest(BaseModel):
    """Request model for withdrawal operations."""
    proof: Dict[str, Any] = Field(..., description="Proof object understood by the verifier backend")
    root: str = Field(..., description="Root the proof was generated against (hex)")
    nullifier_hash: str = Field(..., description="Nullifier hash (hex)")
    recipient: str = Field(..., description="Recipient address")

    @field_validator("root", "nullifier_hash")
    @classmethod
    def check_field_elements(cls, value: str) -> str:
        return _field_hex(value)


class WithdrawalResponse(BaseModel):
    """Response model for withdrawal operations."""
    status: str = "success"
    recipient: str
    nullifier_hash: str
    amount: int
    timestamp: datetime


class BatchWithdrawalRequest(BaseModel):
    """Independent withdrawals submitted together."""
    requests: List[WithdrawalRequest] = Field(..., min_length=1)


class BatchWithdrawalResponse(BaseModel):
    """Per-request success flags, in request order."""
    results: List[bool]
    succeeded: int


class MixerStateResponse(BaseModel):
    """Response model for mixer state."""
    root: str = Field(..., description="Current Merkle root (hex)")
    depth: int = Field(..., description="Merkle tree depth")
    capacity: int
    num_commitments: int = Field(..., description="Number of commitments")
    num_nullifiers: int = Field(..., description="Number of spent nullifiers")
    num_roots: int = Field(..., description="Roots in the history window")
    root_history_policy: str
    custody_balance: int
    deposit_amount: int
    paused: bool


class RootsResponse(BaseModel):
    """Root history window, oldest first."""
    roots: List[str]
    latest: Optional[str] = None
    policy: str


class RootStatusResponse(BaseModel):
    root: str
    valid: bool


class CommitmentsResponse(BaseModel):
    """Ordered leaf array."""
    commitments: List[str]
    count: int


class MerklePathResponse(BaseModel):
    """Authentication path against the current root."""
    leaf_index: int
    siblings: List[str]
    path_indices: List[int]
    root: str


class NullifierStatusResponse(BaseModel):
    nullifier_hash: str
    spent: bool


class DrainRequest(BaseModel):
    recipient: str = Field(..., description="Address receiving the custody balance")


class DrainResponse(BaseModel):
    recipient: str
    amount: int


class ErrorResponse(BaseModel):
    """Error response."""
    error: str = Field(..., description="Error code")
    detail: str = Field(..., description="Error message")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
