"""Pydantic data models for the ZK-Mixer REST API."""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

# snarkjs writes coordinates and signals as decimal strings
Coordinate = Union[str, int]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    version: str = "0.1.0"


class ErrorResponse(BaseModel):
    """Error response."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


class PoolCreateRequest(BaseModel):
    """Request model for pool creation."""

    min_delay: int = Field(..., ge=0, description="Advisory minimum delay (seconds)")
    max_delay: int = Field(..., ge=0, description="Advisory maximum delay (seconds)")
    merkle_depth: int = Field(..., ge=1, le=32, description="Depth of the pool's Merkle tree")


class PoolResponse(BaseModel):
    """Public pool information."""

    pool_id: int
    total_amount: int = Field(..., description="Current pool balance")
    participant_count: int
    min_delay: int
    max_delay: int
    merkle_depth: int
    merkle_root: str = Field(..., description="Current Merkle root (hex)")
    recent_roots: List[str] = Field(default_factory=list, description="Still-accepted earlier roots")
    is_active: bool
    created_at: datetime


class RootUpdateRequest(BaseModel):
    """Request model for publishing a pool's Merkle root."""

    merkle_root: str = Field(..., description="New Merkle root (hex)")


class PoolActiveRequest(BaseModel):
    """Request model for activating or deactivating a pool."""

    active: bool


class EmergencyWithdrawalRequest(BaseModel):
    """Request model for draining a pool while the mixer is paused."""

    recipient: str = Field(..., min_length=1, description="Ledger account to credit")


class EmergencyWithdrawalResponse(BaseModel):
    pool_id: int
    recipient: str
    amount: int


class DepositRequest(BaseModel):
    """Request model for deposit operations."""

    commitment: str = Field(..., description="Commitment H(secret, amount, seed) (hex)")
    pool_id: int = Field(..., ge=1)
    amount: int = Field(..., gt=0, description="Amount to deposit in base units")
    depositor: str = Field(..., min_length=1, description="Ledger account to debit")


class DepositResponse(BaseModel):
    """Response model for deposit operations."""

    commitment: str = Field(..., description="Commitment hash (hex)")
    amount: int
    pool_id: int
    leaf_index: int = Field(..., description="Position of the commitment in the pool's tree")
    timestamp: datetime
    is_withdrawn: bool = False


class ProofData(BaseModel):
    """Groth16 proof in snarkjs ``proof.json`` layout."""

    pi_a: List[Coordinate] = Field(..., min_length=2)
    pi_b: List[List[Coordinate]] = Field(..., min_length=2)
    pi_c: List[Coordinate] = Field(..., min_length=2)
    protocol: Optional[str] = "groth16"
    curve: Optional[str] = "bn128"


class WithdrawalRequest(BaseModel):
    """Request model for withdrawal operations."""

    nullifier: str = Field(..., description="Nullifier (hex)")
    recipient: str = Field(..., min_length=1, description="Ledger account to credit")
    amount: int = Field(..., description="Amount to withdraw in base units")
    proof: ProofData
    public_signals: List[Coordinate] = Field(
        ..., description="merkle_root, nullifier, recipient, amount as decimal strings"
    )


class WithdrawalResponse(BaseModel):
    """Response model for withdrawal operations."""

    transaction_hash: str = Field(..., description="Transaction hash")
    nullifier: str
    recipient: str
    amount: int = Field(..., description="Withdrawal amount")
    pool_id: int
    merkle_root: str
    timestamp: datetime


class VerifyRequest(BaseModel):
    """Request model for stand-alone proof verification."""

    proof: ProofData
    public_signals: List[Coordinate]


class VerifyResponse(BaseModel):
    """Result of stand-alone proof verification."""

    valid: bool


class NullifierStatusResponse(BaseModel):
    """Whether a nullifier has been spent."""

    nullifier: str
    used: bool


class MixerStatistics(BaseModel):
    """Response model for mixer statistics."""

    total_pools: int
    active_pools: int
    total_deposits: int
    total_withdrawals: int
    total_value_locked: int
    used_nullifiers: int
    paused: bool
