"""Tests for the Poseidon sponge."""

import pytest

from zkmixer.crypto.field import CURVE_ORDER
from zkmixer.crypto.poseidon import (
    MDS_MATRIX,
    ROUND_CONSTANTS,
    WIDTH,
    permute,
    poseidon_hash,
)
from zkmixer.exceptions import FieldElementOutOfRange, MalformedInputError


class TestParameters:
    """Tests for derived constants."""

    def test_round_constant_shape(self):
        assert len(ROUND_CONSTANTS) == 8 + 57
        assert all(len(row) == WIDTH for row in ROUND_CONSTANTS)
        assert all(0 <= c < CURVE_ORDER for row in ROUND_CONSTANTS for c in row)

    def test_mds_is_cauchy(self):
        for i in range(WIDTH):
            for j in range(WIDTH):
                assert (MDS_MATRIX[i][j] * (i + j + WIDTH)) % CURVE_ORDER == 1


class TestPoseidonHash:
    """Tests for the hash interface."""

    def test_deterministic(self):
        assert poseidon_hash([1, 2]) == poseidon_hash([1, 2])

    def test_output_in_field(self):
        assert 0 <= poseidon_hash([CURVE_ORDER - 1, 0, 7]) < CURVE_ORDER

    def test_order_matters(self):
        assert poseidon_hash([1, 2]) != poseidon_hash([2, 1])

    def test_arity_is_domain_separated(self):
        assert poseidon_hash([1, 2]) != poseidon_hash([1, 2, 0])
        assert poseidon_hash([5]) != poseidon_hash([5, 0])

    def test_long_input(self):
        digest = poseidon_hash(list(range(1, 10)))
        assert 0 <= digest < CURVE_ORDER

    def test_empty_input_rejected(self):
        with pytest.raises(MalformedInputError):
            poseidon_hash([])

    def test_unreduced_input_rejected(self):
        with pytest.raises(FieldElementOutOfRange):
            poseidon_hash([CURVE_ORDER])
        with pytest.raises(FieldElementOutOfRange):
            poseidon_hash([-1])


class TestPermutation:
    """Tests for the raw permutation."""

    def test_width_enforced(self):
        with pytest.raises(MalformedInputError):
            permute([0, 0])

    def test_permutation_changes_state(self):
        assert permute([0, 0, 0]) != [0, 0, 0]
        assert permute([0, 0, 1]) != permute([0, 1, 0])
