"""Commitment and nullifier scheme.

    commitment = H(secret, amount, nullifier_seed)
    nullifier  = H(secret, nullifier_seed)

H is the Poseidon sponge from ``zkmixer.crypto.poseidon`` so that the
withdrawal circuit can recompute both values in-circuit. Results are
serialized as 32 big-endian bytes of a scalar-field element.

The nullifier omits the amount: one opening has exactly one nullifier, so a
spent note stays spent whatever amount a later proof claims.
"""

import hashlib
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple

from zkmixer.crypto.field import CURVE_ORDER, check_scalar
from zkmixer.crypto.poseidon import poseidon_hash
from zkmixer.exceptions import (
    DeserializationError,
    FieldElementOutOfRange,
    InvalidCommitmentError,
    InvalidNullifierError,
    InvalidRecipient,
)
from zkmixer.utils.encoding import bytes_to_field, bytes_to_hex, field_to_bytes

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
NOTE_PREFIX = "zkmixer-note-v1"


class CommitmentScheme:
    """
    Deterministic binding of note openings to commitments and nullifiers.

    All inputs are scalar-field elements; nothing is reduced implicitly.
    """

    HASH_SIZE = 32

    @staticmethod
    def compute_commitment(secret: int, amount: int, nullifier_seed: int) -> bytes:
        """
        Compute commitment H(secret, amount, nullifier_seed).

        Args:
            secret: Depositor's secret
            amount: Deposited amount in base units
            nullifier_seed: Seed later revealed only through the nullifier

        Returns:
            bytes: 32-byte commitment

        Raises:
            FieldElementOutOfRange: If an input is not in [0, R)
        """
        check_scalar(secret, "secret")
        check_scalar(amount, "amount")
        check_scalar(nullifier_seed, "nullifier_seed")
        return field_to_bytes(poseidon_hash([secret, amount, nullifier_seed]))

    @staticmethod
    def compute_nullifier(secret: int, nullifier_seed: int) -> bytes:
        """
        Compute nullifier H(secret, nullifier_seed).

        Raises:
            FieldElementOutOfRange: If an input is not in [0, R)
        """
        check_scalar(secret, "secret")
        check_scalar(nullifier_seed, "nullifier_seed")
        return field_to_bytes(poseidon_hash([secret, nullifier_seed]))

    @staticmethod
    def verify_commitment(
        secret: int, amount: int, nullifier_seed: int, expected_commitment: bytes
    ) -> bool:
        """Check that an opening matches a commitment."""
        try:
            computed = CommitmentScheme.compute_commitment(secret, amount, nullifier_seed)
        except FieldElementOutOfRange:
            return False
        return secrets.compare_digest(computed, expected_commitment)

    @staticmethod
    def verify_nullifier(secret: int, nullifier_seed: int, expected_nullifier: bytes) -> bool:
        """Check that an opening matches a nullifier."""
        try:
            computed = CommitmentScheme.compute_nullifier(secret, nullifier_seed)
        except FieldElementOutOfRange:
            return False
        return secrets.compare_digest(computed, expected_nullifier)


def parse_commitment(commitment: bytes) -> int:
    """
    Decode a commitment to its field element.

    Raises:
        InvalidCommitmentError: If it is not 32 bytes encoding a value below R
    """
    try:
        return bytes_to_field(commitment)
    except FieldElementOutOfRange as e:
        raise InvalidCommitmentError(f"Invalid commitment: {e}") from e


def parse_nullifier(nullifier: bytes) -> int:
    """
    Decode a nullifier to its field element.

    Raises:
        InvalidNullifierError: If it is not 32 bytes encoding a value below R
    """
    try:
        return bytes_to_field(nullifier)
    except FieldElementOutOfRange as e:
        raise InvalidNullifierError(f"Invalid nullifier: {e}") from e


def recipient_to_field(recipient: str) -> int:
    """
    Map a recipient account id to the field element bound by the proof.

    20-byte hex addresses map to their integer value; any other account id
    maps to SHA-256(utf-8 id) mod R.

    Raises:
        InvalidRecipient: If recipient is empty or the zero address
    """
    if not isinstance(recipient, str) or not recipient.strip():
        raise InvalidRecipient("Recipient must be a non-empty account id")
    if _ADDRESS_RE.match(recipient):
        value = int(recipient, 16)
        if value == 0:
            raise InvalidRecipient("Recipient must not be the zero address")
        return value
    digest = hashlib.sha256(recipient.encode("utf-8")).digest()
    return int.from_bytes(digest, "big") % CURVE_ORDER


def withdrawal_public_inputs(
    merkle_root: bytes, nullifier: bytes, recipient: str, amount: int
) -> Tuple[int, int, int, int]:
    """
    Build the public statement of a withdrawal proof.

    Order: (merkle_root, nullifier, recipient, amount). Both the prover side
    and the mixer build it with this function, so a proof made for one
    recipient or amount cannot be replayed for another.
    """
    root_value = bytes_to_field(merkle_root)
    nullifier_value = parse_nullifier(nullifier)
    recipient_value = recipient_to_field(recipient)
    check_scalar(amount, "amount")
    return (root_value, nullifier_value, recipient_value, amount)


@dataclass
class Note:
    """
    Off-line opening of a deposit.

    The note is the only thing a depositor needs to keep; losing it loses
    the funds, sharing it shares them.
    """

    secret: int
    amount: int
    nullifier_seed: int
    commitment: bytes = field(init=False)
    nullifier: bytes = field(init=False)
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.commitment = CommitmentScheme.compute_commitment(
            self.secret, self.amount, self.nullifier_seed
        )
        self.nullifier = CommitmentScheme.compute_nullifier(self.secret, self.nullifier_seed)

    @classmethod
    def generate(cls, amount: int) -> "Note":
        """Create a note with a fresh random secret and nullifier seed."""
        return cls(
            secret=secrets.randbelow(CURVE_ORDER),
            amount=amount,
            nullifier_seed=secrets.randbelow(CURVE_ORDER),
        )

    def to_string(self) -> str:
        """Serialize as ``zkmixer-note-v1-<secret>-<amount>-<seed>`` (hex fields)."""
        return (
            f"{NOTE_PREFIX}-{self.secret:064x}-{self.amount:x}-{self.nullifier_seed:064x}"
        )

    @classmethod
    def parse(cls, text: str) -> "Note":
        """
        Parse a note produced by ``to_string``.

        Raises:
            DeserializationError: If the text is not a note or a field is
                outside the scalar field
        """
        if not text.startswith(NOTE_PREFIX + "-"):
            raise DeserializationError("Not a zkmixer note")
        parts = text[len(NOTE_PREFIX) + 1 :].split("-")
        if len(parts) != 3:
            raise DeserializationError("Note must have three fields")
        try:
            secret, amount, seed = (int(p, 16) for p in parts)
        except ValueError as e:
            raise DeserializationError(f"Invalid note field: {e}") from e
        try:
            return cls(secret=secret, amount=amount, nullifier_seed=seed)
        except FieldElementOutOfRange as e:
            raise DeserializationError(f"Note field out of range: {e}") from e

    def to_dict(self) -> dict:
        """Public view of the note (no secret material)."""
        return {
            "commitment": bytes_to_hex(self.commitment),
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
        }

