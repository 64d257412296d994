"""Mixer core: commitments, Merkle roots, settlement and the mixing ledger."""

from zkmixer.core.commitment import CommitmentScheme, Note, withdrawal_public_inputs
from zkmixer.core.ledger import InMemoryLedger, Ledger
from zkmixer.core.merkle_tree import MerkleTree
from zkmixer.core.mixer import (
    Deposit,
    MixingLedger,
    Pool,
    WithdrawalReceipt,
    WithdrawalRequest,
)

__all__ = [
    "CommitmentScheme",
    "Note",
    "withdrawal_public_inputs",
    "InMemoryLedger",
    "Ledger",
    "MerkleTree",
    "Deposit",
    "MixingLedger",
    "Pool",
    "WithdrawalReceipt",
    "WithdrawalRequest",
]
