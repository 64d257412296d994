"""Pairing-product check on BN254.

The optimal-ate Miller loop and final exponentiation come from
``py_ecc.optimized_bn128``. Points are validated with this package's own
curve checks before they are handed to the library; the Miller loop outputs
are multiplied in Fq12 and a single final exponentiation is applied to the
product.
"""

import logging
from typing import Sequence, Tuple

from py_ecc.optimized_bn128 import FQ, FQ2, FQ12
from py_ecc.optimized_bn128 import final_exponentiate, pairing

from zkmixer.crypto.curve import G1Point, G2Point, validate_g1, validate_g2
from zkmixer.exceptions import MalformedInputError

logger = logging.getLogger(__name__)


def _to_backend_g1(p: G1Point) -> Tuple[FQ, FQ, FQ]:
    if p.is_infinity:
        return (FQ.one(), FQ.one(), FQ.zero())
    return (FQ(p.x), FQ(p.y), FQ.one())


def _to_backend_g2(p: G2Point) -> Tuple[FQ2, FQ2, FQ2]:
    if p.is_infinity:
        return (FQ2.one(), FQ2.one(), FQ2.zero())
    return (FQ2([p.x[0], p.x[1]]), FQ2([p.y[0], p.y[1]]), FQ2.one())


def pairing_product_check(g1s: Sequence[G1Point], g2s: Sequence[G2Point]) -> bool:
    """
    Check that prod_i e(g1s[i], g2s[i]) is the identity of GT.

    Args:
        g1s: G1 points
        g2s: G2 points, same length as g1s

    Returns:
        bool: True iff the product of pairings equals 1

    Raises:
        MalformedInputError: If the sequences differ in length
        FieldElementOutOfRange: If a coordinate is not reduced
        PointNotOnCurve: If any point fails validation
    """
    if len(g1s) != len(g2s):
        raise MalformedInputError(
            f"Pairing check needs matching lengths, got {len(g1s)} and {len(g2s)}"
        )

    for i, (p, q) in enumerate(zip(g1s, g2s)):
        validate_g1(p, f"g1[{i}]")
        validate_g2(q, f"g2[{i}]")

    accumulator = FQ12.one()
    for p, q in zip(g1s, g2s):
        # e(O, Q) = e(P, O) = 1
        if p.is_infinity or q.is_infinity:
            continue
        accumulator = accumulator * pairing(
            _to_backend_g2(q), _to_backend_g1(p), final_exponentiate=False
        )

    result = final_exponentiate(accumulator) == FQ12.one()
    logger.debug("Pairing product over %d pairs: %s", len(g1s), result)
    return result
