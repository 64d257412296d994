"""Cryptographic primitives module"""

from zkmixer.crypto.field import (
    CURVE_ORDER,
    FIELD_MODULUS,
    mod_inverse,
)
from zkmixer.crypto.curve import (
    G1,
    G2,
    INFINITY_G1,
    INFINITY_G2,
    G1Point,
    G2Point,
    add_g1,
    add_g2,
    double_g1,
    double_g2,
    is_on_curve_g1,
    is_on_curve_g2,
    negate_g1,
    negate_g2,
    scalar_mul_g1,
    scalar_mul_g2,
)
from zkmixer.crypto.pairing import pairing_product_check
from zkmixer.crypto.poseidon import poseidon_hash
from zkmixer.crypto.groth16 import Groth16Verifier, Proof, VerificationKey, verify

__all__ = [
    'CURVE_ORDER',
    'FIELD_MODULUS',
    'mod_inverse',
    'G1',
    'G2',
    'INFINITY_G1',
    'INFINITY_G2',
    'G1Point',
    'G2Point',
    'add_g1',
    'add_g2',
    'double_g1',
    'double_g2',
    'is_on_curve_g1',
    'is_on_curve_g2',
    'negate_g1',
    'negate_g2',
    'scalar_mul_g1',
    'scalar_mul_g2',
    'pairing_product_check',
    'poseidon_hash',
    'Groth16Verifier',
    'Proof',
    'VerificationKey',
    'verify',
]
