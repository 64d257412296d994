"""Prime field and quadratic extension arithmetic for BN254 (alt_bn128).

Two prime fields are in play:

    FIELD_MODULUS (Q) - base field of the curve; point coordinates live here
    CURVE_ORDER   (R) - scalar field; proof scalars, public inputs and hash
                        outputs live here

Elements of Fq are plain ints in ``[0, Q)``. Elements of the quadratic
extension Fq2 = Fq[i] / (i^2 + 1) are ``(c0, c1)`` tuples meaning
``c0 + c1 * i``, the same convention snarkjs uses in its JSON files.

All helpers validate their operands and raise instead of reducing silently.
"""

from typing import Iterable, Tuple

from zkmixer.exceptions import FieldElementOutOfRange, NoInverseExists

FIELD_MODULUS = 21888242871839275222246405745257275088696311157297823662689037894645226208583
CURVE_ORDER = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Size of a serialized field element
FIELD_ELEMENT_SIZE = 32

Fq2 = Tuple[int, int]

FQ2_ZERO: Fq2 = (0, 0)


def mod_inverse(a: int, m: int) -> int:
    """
    Compute a^-1 mod m with the extended Euclidean algorithm.

    Args:
        a: Value to invert
        m: Modulus (> 1)

    Returns:
        int: x in [0, m) with a * x == 1 (mod m)

    Raises:
        NoInverseExists: If gcd(a, m) != 1
    """
    if m <= 1:
        raise NoInverseExists(f"Modulus must be greater than 1, got {m}")

    old_r, r = a % m, m
    old_s, s = 1, 0
    while r:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_s, s = s, old_s - quotient * s

    if old_r != 1:
        raise NoInverseExists(f"{a} has no inverse modulo {m}")
    return old_s % m


def check_field_element(value: int, modulus: int = FIELD_MODULUS, name: str = "value") -> int:
    """
    Ensure value is an int already reduced into [0, modulus).

    Raises:
        FieldElementOutOfRange: If value is not an int or not reduced
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldElementOutOfRange(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value >= modulus:
        raise FieldElementOutOfRange(f"{name} is not reduced modulo {modulus}")
    return value


def check_scalar(value: int, name: str = "scalar") -> int:
    """Ensure value is a reduced scalar-field element."""
    return check_field_element(value, CURVE_ORDER, name)


def check_scalars(values: Iterable[int], name: str = "input") -> Tuple[int, ...]:
    """Validate a sequence of scalar-field elements."""
    return tuple(check_scalar(v, f"{name}[{i}]") for i, v in enumerate(values))


def check_fq2(value: Fq2, name: str = "value") -> Fq2:
    """
    Ensure value is a pair of reduced base-field elements.

    Raises:
        FieldElementOutOfRange: On wrong shape or unreduced coefficients
    """
    if not isinstance(value, tuple) or len(value) != 2:
        raise FieldElementOutOfRange(f"{name} must be a (c0, c1) pair")
    check_field_element(value[0], FIELD_MODULUS, f"{name}.c0")
    check_field_element(value[1], FIELD_MODULUS, f"{name}.c1")
    return value


def fq2_add(a: Fq2, b: Fq2) -> Fq2:
    return ((a[0] + b[0]) % FIELD_MODULUS, (a[1] + b[1]) % FIELD_MODULUS)


def fq2_sub(a: Fq2, b: Fq2) -> Fq2:
    return ((a[0] - b[0]) % FIELD_MODULUS, (a[1] - b[1]) % FIELD_MODULUS)


def fq2_neg(a: Fq2) -> Fq2:
    return ((-a[0]) % FIELD_MODULUS, (-a[1]) % FIELD_MODULUS)


def fq2_mul(a: Fq2, b: Fq2) -> Fq2:
    # (a0 + a1 i)(b0 + b1 i) with i^2 = -1
    return (
        (a[0] * b[0] - a[1] * b[1]) % FIELD_MODULUS,
        (a[0] * b[1] + a[1] * b[0]) % FIELD_MODULUS,
    )


def fq2_scale(a: Fq2, k: int) -> Fq2:
    return ((a[0] * k) % FIELD_MODULUS, (a[1] * k) % FIELD_MODULUS)


def fq2_square(a: Fq2) -> Fq2:
    return fq2_mul(a, a)


def fq2_inv(a: Fq2) -> Fq2:
    """Invert a non-zero Fq2 element via its norm a0^2 + a1^2."""
    norm = (a[0] * a[0] + a[1] * a[1]) % FIELD_MODULUS
    inv_norm = mod_inverse(norm, FIELD_MODULUS)
    return ((a[0] * inv_norm) % FIELD_MODULUS, (-a[1] * inv_norm) % FIELD_MODULUS)
