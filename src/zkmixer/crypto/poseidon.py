"""Poseidon-style sponge hash over the BN254 scalar field.

Commitments and nullifiers must be cheap to evaluate inside the withdrawal
circuit, so they use an algebraic sponge rather than a byte-oriented hash.

Parameters:
    - Width t = 3 (rate 2, capacity 1)
    - S-box x^5 (gcd(5, R - 1) = 1, so it is a permutation)
    - 8 full rounds (4 before, 4 after) and 57 partial rounds
    - MDS matrix: Cauchy matrix M[i][j] = 1 / (i + j + t)
    - Round constants: SHA-256(DOMAIN || round || lane) mod R

The capacity lane is initialised with the number of inputs, which keeps
H(a, b) and H(a, b, 0) apart when the last block is zero padded.

Example Usage:
    >>> from zkmixer.crypto.poseidon import poseidon_hash
    >>> poseidon_hash([1, 2]) == poseidon_hash([1, 2])
    True
"""

import hashlib
from typing import List, Sequence

from zkmixer.crypto.field import CURVE_ORDER, check_scalars, mod_inverse
from zkmixer.exceptions import MalformedInputError

WIDTH = 3
RATE = WIDTH - 1
FULL_ROUNDS = 8
PARTIAL_ROUNDS = 57
ALPHA = 5
DOMAIN = b"zkmixer.poseidon.bn254.t3"


def _derive_round_constants() -> List[List[int]]:
    constants = []
    for rnd in range(FULL_ROUNDS + PARTIAL_ROUNDS):
        row = []
        for lane in range(WIDTH):
            seed = DOMAIN + rnd.to_bytes(2, "big") + lane.to_bytes(2, "big")
            row.append(int.from_bytes(hashlib.sha256(seed).digest(), "big") % CURVE_ORDER)
        constants.append(row)
    return constants


def _derive_mds() -> List[List[int]]:
    return [
        [mod_inverse(i + j + WIDTH, CURVE_ORDER) for j in range(WIDTH)]
        for i in range(WIDTH)
    ]


ROUND_CONSTANTS = _derive_round_constants()
MDS_MATRIX = _derive_mds()


def _sbox(x: int) -> int:
    return pow(x, ALPHA, CURVE_ORDER)


def _mix(state: List[int]) -> List[int]:
    return [
        sum(MDS_MATRIX[i][j] * state[j] for j in range(WIDTH)) % CURVE_ORDER
        for i in range(WIDTH)
    ]


def permute(state: Sequence[int]) -> List[int]:
    """
    Apply the Poseidon permutation to a width-3 state.

    Args:
        state: Three reduced scalar-field elements

    Returns:
        List[int]: Permuted state
    """
    if len(state) != WIDTH:
        raise MalformedInputError(f"Poseidon state must have {WIDTH} elements")
    state = list(check_scalars(state, "state"))

    half_full = FULL_ROUNDS // 2
    for rnd, constants in enumerate(ROUND_CONSTANTS):
        state = [(s + c) % CURVE_ORDER for s, c in zip(state, constants)]
        if rnd < half_full or rnd >= half_full + PARTIAL_ROUNDS:
            state = [_sbox(s) for s in state]
        else:
            state[0] = _sbox(state[0])
        state = _mix(state)
    return state


def poseidon_hash(inputs: Sequence[int]) -> int:
    """
    Hash a non-empty sequence of scalar-field elements to one element.

    Args:
        inputs: Field elements, each in [0, R)

    Returns:
        int: Digest in [0, R)

    Raises:
        MalformedInputError: If inputs is empty
        FieldElementOutOfRange: If any input is not reduced
    """
    if len(inputs) == 0:
        raise MalformedInputError("Poseidon needs at least one input")
    elements = check_scalars(inputs)

    state = [len(elements) % CURVE_ORDER] + [0] * RATE
    for offset in range(0, len(elements), RATE):
        block = list(elements[offset : offset + RATE])
        block += [0] * (RATE - len(block))
        for lane, value in enumerate(block, start=1):
            state[lane] = (state[lane] + value) % CURVE_ORDER
        state = permute(state)
    return state[1]
