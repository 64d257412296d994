"""Elliptic curve groups G1 and G2 of BN254 in affine coordinates.

    G1: y^2 = x^3 + 3           over Fq
    G2: y^2 = x^3 + 3 / (9 + i) over Fq2 (the sextic twist)

The point at infinity is encoded with all-zero coordinates, matching the
EVM precompile encoding. (0, 0) never satisfies either curve equation, so the
encoding is unambiguous.

Public operations validate every operand first and raise
``FieldElementOutOfRange`` or ``PointNotOnCurve``; the ``_``-prefixed helpers
assume validated input and are used internally once validation has happened.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Sequence

from zkmixer.crypto.field import (
    CURVE_ORDER,
    FIELD_MODULUS,
    FQ2_ZERO,
    Fq2,
    check_field_element,
    check_fq2,
    fq2_add,
    fq2_inv,
    fq2_mul,
    fq2_neg,
    fq2_scale,
    fq2_square,
    fq2_sub,
    mod_inverse,
)
from zkmixer.exceptions import FieldElementOutOfRange, PointNotOnCurve

CURVE_B = 3
# 3 / (9 + i)
CURVE_B2: Fq2 = fq2_mul((3, 0), fq2_inv((9, 1)))


@dataclass(frozen=True)
class G1Point:
    """Affine point of G1; (0, 0) is the point at infinity."""

    x: int
    y: int

    @property
    def is_infinity(self) -> bool:
        return self.x == 0 and self.y == 0

    def to_list(self) -> List[str]:
        return [str(self.x), str(self.y)]

    @classmethod
    def from_list(cls, coords: Sequence) -> "G1Point":
        if len(coords) < 2:
            raise PointNotOnCurve("G1 point needs two coordinates")
        return cls(_parse_int(coords[0]), _parse_int(coords[1]))


@dataclass(frozen=True)
class G2Point:
    """Affine point of G2 with Fq2 coordinates; all zeros is infinity."""

    x: Fq2
    y: Fq2

    @property
    def is_infinity(self) -> bool:
        return self.x == FQ2_ZERO and self.y == FQ2_ZERO

    def to_list(self) -> List[List[str]]:
        return [[str(self.x[0]), str(self.x[1])], [str(self.y[0]), str(self.y[1])]]

    @classmethod
    def from_list(cls, coords: Sequence) -> "G2Point":
        if len(coords) < 2 or len(coords[0]) != 2 or len(coords[1]) != 2:
            raise PointNotOnCurve("G2 point needs two (c0, c1) coordinates")
        return cls(
            (_parse_int(coords[0][0]), _parse_int(coords[0][1])),
            (_parse_int(coords[1][0]), _parse_int(coords[1][1])),
        )


def _parse_int(value) -> int:
    """Parse a decimal or 0x-prefixed coordinate as snarkjs writes them."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        try:
            return int(text, 16) if text.startswith("0x") else int(text)
        except ValueError as exc:
            raise FieldElementOutOfRange(f"Cannot parse coordinate {value!r}") from exc
    raise FieldElementOutOfRange(f"Cannot parse coordinate {value!r}")


INFINITY_G1 = G1Point(0, 0)
INFINITY_G2 = G2Point(FQ2_ZERO, FQ2_ZERO)

G1 = G1Point(1, 2)
G2 = G2Point(
    (
        10857046999023057135944570762232829481370756359578518086990519993285655852781,
        11559732032986387107991004021392285783925812861821192530917403151452391805634,
    ),
    (
        8495653923123431417604973247489272438418190587263600148770280649306958101930,
        4082367875863433681332203403145435568316851327593401208105741076214120093531,
    ),
)


# ========== G1 ==========


def is_on_curve_g1(p: G1Point) -> bool:
    """Check that p is infinity or a reduced point on y^2 = x^3 + 3."""
    try:
        check_field_element(p.x, FIELD_MODULUS, "x")
        check_field_element(p.y, FIELD_MODULUS, "y")
    except FieldElementOutOfRange:
        return False
    if p.is_infinity:
        return True
    return (p.y * p.y - p.x * p.x * p.x - CURVE_B) % FIELD_MODULUS == 0


def validate_g1(p: G1Point, name: str = "point") -> G1Point:
    """
    Validate a G1 point, raising on the first problem found.

    Raises:
        FieldElementOutOfRange: If a coordinate is not reduced mod Q
        PointNotOnCurve: If the point is off the curve
    """
    if not isinstance(p, G1Point):
        raise PointNotOnCurve(f"{name} is not a G1 point")
    check_field_element(p.x, FIELD_MODULUS, f"{name}.x")
    check_field_element(p.y, FIELD_MODULUS, f"{name}.y")
    if not is_on_curve_g1(p):
        raise PointNotOnCurve(f"{name} is not on the G1 curve")
    return p


def _double_g1(p: G1Point) -> G1Point:
    if p.is_infinity or p.y == 0:
        return INFINITY_G1
    slope = 3 * p.x * p.x * mod_inverse(2 * p.y, FIELD_MODULUS) % FIELD_MODULUS
    x3 = (slope * slope - 2 * p.x) % FIELD_MODULUS
    y3 = (slope * (p.x - x3) - p.y) % FIELD_MODULUS
    return G1Point(x3, y3)


def _add_g1(a: G1Point, b: G1Point) -> G1Point:
    if a.is_infinity:
        return b
    if b.is_infinity:
        return a
    if a.x == b.x:
        if a.y == b.y:
            return _double_g1(a)
        # Opposite points
        return INFINITY_G1
    slope = (b.y - a.y) * mod_inverse(b.x - a.x, FIELD_MODULUS) % FIELD_MODULUS
    x3 = (slope * slope - a.x - b.x) % FIELD_MODULUS
    y3 = (slope * (a.x - x3) - a.y) % FIELD_MODULUS
    return G1Point(x3, y3)


def _negate_g1(p: G1Point) -> G1Point:
    if p.is_infinity:
        return p
    return G1Point(p.x, (FIELD_MODULUS - p.y) % FIELD_MODULUS)


def _multiply_g1(p: G1Point, n: int) -> G1Point:
    result = INFINITY_G1
    for bit in bin(n)[2:] if n > 0 else "":
        result = _double_g1(result)
        if bit == "1":
            result = _add_g1(result, p)
    return result


def add_g1(a: G1Point, b: G1Point) -> G1Point:
    """Add two G1 points."""
    validate_g1(a, "a")
    validate_g1(b, "b")
    return _add_g1(a, b)


def double_g1(p: G1Point) -> G1Point:
    """Double a G1 point."""
    validate_g1(p)
    return _double_g1(p)


def negate_g1(p: G1Point) -> G1Point:
    """Negate a G1 point; infinity is its own negation."""
    validate_g1(p)
    return _negate_g1(p)


def scalar_mul_g1(p: G1Point, k: int) -> G1Point:
    """
    Multiply a G1 point by a scalar using double-and-add.

    The scalar is taken modulo the group order, so k == 0 (mod R) gives
    the point at infinity.
    """
    validate_g1(p)
    return _multiply_g1(p, _reduce_scalar(k))


# ========== G2 ==========


def _on_twist(p: G2Point) -> bool:
    lhs = fq2_square(p.y)
    rhs = fq2_add(fq2_mul(fq2_square(p.x), p.x), CURVE_B2)
    return lhs == rhs


@lru_cache(maxsize=1024)
def _in_subgroup_g2(p: G2Point) -> bool:
    # The twist has a large cofactor; only the order-R subgroup is usable.
    return _multiply_g2(p, CURVE_ORDER).is_infinity


def is_on_curve_g2(p: G2Point) -> bool:
    """
    Fully validate a G2 point.

    Checks coordinate bounds, the twisted curve equation and membership
    of the order-R subgroup. A bounds-only check is not enough: points
    outside the subgroup break pairing soundness.
    """
    try:
        check_fq2(p.x, "x")
        check_fq2(p.y, "y")
    except FieldElementOutOfRange:
        return False
    if p.is_infinity:
        return True
    return _on_twist(p) and _in_subgroup_g2(p)


def validate_g2(p: G2Point, name: str = "point") -> G2Point:
    """
    Validate a G2 point, raising on the first problem found.

    Raises:
        FieldElementOutOfRange: If a coefficient is not reduced mod Q
        PointNotOnCurve: If the point is off the twist or outside the subgroup
    """
    if not isinstance(p, G2Point):
        raise PointNotOnCurve(f"{name} is not a G2 point")
    check_fq2(p.x, f"{name}.x")
    check_fq2(p.y, f"{name}.y")
    if p.is_infinity:
        return p
    if not _on_twist(p):
        raise PointNotOnCurve(f"{name} is not on the G2 twist")
    if not _in_subgroup_g2(p):
        raise PointNotOnCurve(f"{name} is not in the G2 subgroup")
    return p


def _double_g2(p: G2Point) -> G2Point:
    if p.is_infinity or p.y == FQ2_ZERO:
        return INFINITY_G2
    slope = fq2_mul(fq2_scale(fq2_square(p.x), 3), fq2_inv(fq2_scale(p.y, 2)))
    x3 = fq2_sub(fq2_square(slope), fq2_scale(p.x, 2))
    y3 = fq2_sub(fq2_mul(slope, fq2_sub(p.x, x3)), p.y)
    return G2Point(x3, y3)


def _add_g2(a: G2Point, b: G2Point) -> G2Point:
    if a.is_infinity:
        return b
    if b.is_infinity:
        return a
    if a.x == b.x:
        if a.y == b.y:
            return _double_g2(a)
        return INFINITY_G2
    slope = fq2_mul(fq2_sub(b.y, a.y), fq2_inv(fq2_sub(b.x, a.x)))
    x3 = fq2_sub(fq2_sub(fq2_square(slope), a.x), b.x)
    y3 = fq2_sub(fq2_mul(slope, fq2_sub(a.x, x3)), a.y)
    return G2Point(x3, y3)


def _negate_g2(p: G2Point) -> G2Point:
    if p.is_infinity:
        return p
    return G2Point(p.x, fq2_neg(p.y))


def _multiply_g2(p: G2Point, n: int) -> G2Point:
    result = INFINITY_G2
    for bit in bin(n)[2:] if n > 0 else "":
        result = _double_g2(result)
        if bit == "1":
            result = _add_g2(result, p)
    return result


def add_g2(a: G2Point, b: G2Point) -> G2Point:
    """Add two G2 points."""
    validate_g2(a, "a")
    validate_g2(b, "b")
    return _add_g2(a, b)


def double_g2(p: G2Point) -> G2Point:
    """Double a G2 point."""
    validate_g2(p)
    return _double_g2(p)


def negate_g2(p: G2Point) -> G2Point:
    """Negate a G2 point."""
    validate_g2(p)
    return _negate_g2(p)


def scalar_mul_g2(p: G2Point, k: int) -> G2Point:
    """Multiply a G2 point by k mod R using double-and-add."""
    validate_g2(p)
    return _multiply_g2(p, _reduce_scalar(k))


def _reduce_scalar(k: int) -> int:
    if isinstance(k, bool) or not isinstance(k, int):
        raise FieldElementOutOfRange(f"Scalar must be an integer, got {type(k).__name__}")
    return k % CURVE_ORDER
