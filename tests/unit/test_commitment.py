"""Tests for the commitment and nullifier scheme."""

import random

import pytest

from zkmixer.core.commitment import (
    CommitmentScheme,
    Note,
    parse_commitment,
    recipient_to_field,
    withdrawal_public_inputs,
)
from zkmixer.crypto.field import CURVE_ORDER
from zkmixer.exceptions import (
    DeserializationError,
    FieldElementOutOfRange,
    InvalidCommitmentError,
    InvalidNullifierError,
    InvalidRecipient,
)


class TestCommitmentComputation:
    """Tests for commitment computation."""

    def test_commitment_size(self):
        assert len(CommitmentScheme.compute_commitment(1, 100, 2)) == CommitmentScheme.HASH_SIZE

    def test_commitment_deterministic(self):
        assert CommitmentScheme.compute_commitment(1, 100, 2) == CommitmentScheme.compute_commitment(
            1, 100, 2
        )

    def test_commitment_binds_amount(self):
        assert CommitmentScheme.compute_commitment(1, 100, 2) != CommitmentScheme.compute_commitment(
            1, 101, 2
        )

    def test_nullifier_differs_from_commitment(self):
        assert CommitmentScheme.compute_nullifier(1, 2) != CommitmentScheme.compute_commitment(
            1, 100, 2
        )

    def test_nullifier_independent_of_amount(self):
        note_a = Note(secret=5, amount=10, nullifier_seed=6)
        note_b = Note(secret=5, amount=20, nullifier_seed=6)
        assert note_a.nullifier == note_b.nullifier
        assert note_a.commitment != note_b.commitment

    def test_out_of_range_inputs(self):
        with pytest.raises(FieldElementOutOfRange):
            CommitmentScheme.compute_commitment(CURVE_ORDER, 1, 1)
        with pytest.raises(FieldElementOutOfRange):
            CommitmentScheme.compute_nullifier(1, -1)

    def test_no_collisions(self):
        rng = random.Random(2024)
        commitments = set()
        nullifiers = set()
        for _ in range(1000):
            secret = rng.randrange(CURVE_ORDER)
            seed = rng.randrange(CURVE_ORDER)
            amount = rng.randrange(1, 10**18)
            commitments.add(CommitmentScheme.compute_commitment(secret, amount, seed))
            nullifiers.add(CommitmentScheme.compute_nullifier(secret, seed))
        assert len(commitments) == 1000
        assert len(nullifiers) == 1000


class TestCommitmentVerification:
    """Tests for opening checks."""

    def test_valid_opening(self):
        commitment = CommitmentScheme.compute_commitment(7, 50, 8)
        assert CommitmentScheme.verify_commitment(7, 50, 8, commitment)

    def test_wrong_opening(self):
        commitment = CommitmentScheme.compute_commitment(7, 50, 8)
        assert not CommitmentScheme.verify_commitment(7, 51, 8, commitment)
        assert not CommitmentScheme.verify_commitment(CURVE_ORDER, 50, 8, commitment)

    def test_nullifier_opening(self):
        nullifier = CommitmentScheme.compute_nullifier(7, 8)
        assert CommitmentScheme.verify_nullifier(7, 8, nullifier)
        assert not CommitmentScheme.verify_nullifier(8, 7, nullifier)


class TestParsing:
    """Tests for decoding and recipient binding."""

    def test_parse_commitment(self):
        commitment = CommitmentScheme.compute_commitment(1, 2, 3)
        assert parse_commitment(commitment) == int.from_bytes(commitment, "big")

    def test_parse_commitment_wrong_size(self):
        with pytest.raises(InvalidCommitmentError):
            parse_commitment(b"\x01" * 31)

    def test_parse_commitment_unreduced(self):
        with pytest.raises(InvalidCommitmentError):
            parse_commitment(b"\xff" * 32)

    def test_address_recipient(self):
        assert recipient_to_field("0x" + "00" * 19 + "b0") == 0xB0

    def test_account_recipient(self):
        value = recipient_to_field("bob")
        assert 0 <= value < CURVE_ORDER
        assert value == recipient_to_field("bob")
        assert value != recipient_to_field("carol")

    @pytest.mark.parametrize("recipient", ["", "   ", "0x" + "00" * 20])
    def test_invalid_recipient(self, recipient):
        with pytest.raises(InvalidRecipient):
            recipient_to_field(recipient)

    def test_public_inputs_order(self):
        root = (5).to_bytes(32, "big")
        nullifier = CommitmentScheme.compute_nullifier(1, 2)
        inputs = withdrawal_public_inputs(root, nullifier, "0x" + "00" * 19 + "b0", 100)
        assert inputs == (5, int.from_bytes(nullifier, "big"), 0xB0, 100)

    def test_public_inputs_bad_nullifier(self):
        with pytest.raises(InvalidNullifierError):
            withdrawal_public_inputs(b"\x00" * 32, b"\x00" * 8, "bob", 1)


class TestNote:
    """Tests for off-line notes."""

    def test_generate(self):
        note = Note.generate(100)
        assert note.amount == 100
        assert CommitmentScheme.verify_commitment(
            note.secret, note.amount, note.nullifier_seed, note.commitment
        )

    def test_string_round_trip(self):
        note = Note.generate(12345)
        parsed = Note.parse(note.to_string())
        assert parsed.commitment == note.commitment
        assert parsed.nullifier == note.nullifier

    @pytest.mark.parametrize(
        "text", ["", "other-note-1-2-3", "zkmixer-note-v1-1-2", "zkmixer-note-v1-x-2-3"]
    )
    def test_parse_invalid(self, text):
        with pytest.raises(DeserializationError):
            Note.parse(text)

    @pytest.mark.parametrize(
        "fields",
        [(CURVE_ORDER, 1, 1), (1, 1, CURVE_ORDER), (1, CURVE_ORDER, 1), (2**256 - 1, 1, 1)],
    )
    def test_parse_field_out_of_range(self, fields):
        secret, amount, seed = fields
        text = f"zkmixer-note-v1-{secret:064x}-{amount:x}-{seed:064x}"
        with pytest.raises(DeserializationError):
            Note.parse(text)

    def test_to_dict_hides_secret(self):
        data = Note.generate(1).to_dict()
        assert "secret" not in data
        assert data["commitment"].startswith("0x")
