"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ZK-Mixer Team"
__description__ = "Privacy-preserving value mixer with Groth16 withdrawals on BN254"

from .core.merkle_tree import MerkleTree
from .core.commitment import CommitmentScheme, Note
from .core.ledger import InMemoryLedger
from .core.mixer import MixingLedger
from .crypto.groth16 import Groth16Verifier, Proof, VerificationKey
from .security.auth import AdminCapability

__all__ = [
    "MerkleTree",
    "CommitmentScheme",
    "Note",
    "InMemoryLedger",
    "MixingLedger",
    "Groth16Verifier",
    "Proof",
    "VerificationKey",
    "AdminCapability",
]
