"""Incremental Poseidon Merkle tree over deposit commitments.

The mixer itself only stores roots; the tree is what an operator (or the
REST layer) uses to compute the root it feeds through
``MixingLedger.update_merkle_root`` and what a depositor uses to build the
membership path for the withdrawal circuit.
"""

from typing import Dict, List, Tuple

from zkmixer.crypto.poseidon import poseidon_hash
from zkmixer.exceptions import (
    FieldElementOutOfRange,
    InvalidCommitmentError,
    InvalidLeafIndexError,
    TreeHeightExceededError,
)
from zkmixer.utils.encoding import bytes_to_field, field_to_bytes


def merkle_hash(left: bytes, right: bytes) -> bytes:
    """Compute parent node Poseidon(left, right)."""
    return field_to_bytes(poseidon_hash([bytes_to_field(left), bytes_to_field(right)]))


class MerkleTree:
    """
    Append-only Merkle tree of fixed height.

    Empty positions hold NULL_LEAF; the hash of an all-empty subtree of each
    level is precomputed so only the path of an inserted leaf is rehashed.
    """

    # Constants
    DEFAULT_HEIGHT = 20
    MAX_HEIGHT = 32
    NULL_LEAF = b"\x00" * 32

    def __init__(self, tree_height: int = DEFAULT_HEIGHT):
        """
        Initialize empty Merkle tree.

        Args:
            tree_height: Height of the tree (1..32)

        Raises:
            ValueError: If height is invalid
        """
        if tree_height < 1 or tree_height > self.MAX_HEIGHT:
            raise ValueError(f"Tree height must be between 1 and {self.MAX_HEIGHT}")

        self.height = tree_height
        self.max_leaves = 2**tree_height
        self.leaves: List[bytes] = []
        # (level, position) -> hash
        self.nodes: Dict[Tuple[int, int], bytes] = {}

        self.zeros: List[bytes] = [self.NULL_LEAF]
        for _ in range(self.height):
            self.zeros.append(merkle_hash(self.zeros[-1], self.zeros[-1]))
        self._root = self.zeros[self.height]

    def insert(self, commitment: bytes) -> int:
        """
        Insert commitment leaf and return leaf index.

        Raises:
            InvalidCommitmentError: If commitment is not a 32-byte field element
            TreeHeightExceededError: If the tree is full
        """
        try:
            bytes_to_field(commitment)
        except FieldElementOutOfRange as e:
            raise InvalidCommitmentError(f"Invalid commitment: {e}") from e

        if len(self.leaves) >= self.max_leaves:
            raise TreeHeightExceededError(f"Tree is full (max {self.max_leaves} commitments)")

        leaf_index = len(self.leaves)
        self.leaves.append(commitment)
        self.nodes[(0, leaf_index)] = commitment

        position = leaf_index
        current = commitment
        for level in range(self.height):
            if position % 2 == 0:
                sibling = self.nodes.get((level, position + 1), self.zeros[level])
                current = merkle_hash(current, sibling)
            else:
                sibling = self.nodes.get((level, position - 1), self.zeros[level])
                current = merkle_hash(sibling, current)
            position >>= 1
            self.nodes[(level + 1, position)] = current

        self._root = current
        return leaf_index

    def get_path(self, leaf_index: int) -> List[bytes]:
        """
        Return the sibling hashes from leaf to root.

        Raises:
            InvalidLeafIndexError: If leaf index is invalid
        """
        if leaf_index < 0 or leaf_index >= len(self.leaves):
            raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

        path = []
        position = leaf_index
        for level in range(self.height):
            path.append(self.nodes.get((level, position ^ 1), self.zeros[level]))
            position >>= 1
        return path

    @staticmethod
    def compute_root(commitment: bytes, path: List[bytes], leaf_index: int) -> bytes:
        """Fold a leaf and its path into the root it implies."""
        current = commitment
        position = leaf_index
        for sibling in path:
            if position % 2 == 0:
                current = merkle_hash(current, sibling)
            else:
                current = merkle_hash(sibling, current)
            position >>= 1
        return current

    def verify_path(self, commitment: bytes, path: List[bytes], leaf_index: int) -> bool:
        """Check that commitment sits at leaf_index under the current root."""
        if len(path) != self.height or not 0 <= leaf_index < self.max_leaves:
            return False
        try:
            return self.compute_root(commitment, path, leaf_index) == self.root
        except FieldElementOutOfRange:
            return False

    @property
    def root(self) -> bytes:
        """Get the current Merkle root hash."""
        return self._root

    def get_state(self) -> dict:
        """Tree state for serialization."""
        return {
            "height": self.height,
            "max_leaves": self.max_leaves,
            "num_leaves": len(self.leaves),
            "leaves": [leaf.hex() for leaf in self.leaves],
            "root": self.root.hex(),
        }

    def __len__(self) -> int:
        return len(self.leaves)

    def __repr__(self) -> str:
        return (
            f"MerkleTree(height={self.height}, "
            f"leaves={len(self.leaves)}/{self.max_leaves}, "
            f"root={self.root.hex()[:16]}...)"
        )
