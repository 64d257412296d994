"""Development trusted setup with a retained trapdoor.

A real deployment loads its verification key from a ceremony transcript and
nobody holds the toxic waste. For local development, demos and tests this
module keeps the setup scalars (alpha, beta, gamma, delta and the IC
exponents) and uses them to run the Groth16 simulator: given the trapdoor,
a proof for ANY statement can be produced without a witness.

    pick a, b at random, then solve for c:
        a * b = alpha * beta + s * gamma + c * delta
    where s = u_0 + sum(u_i * x_i) is the discrete log of vk_x.

The resulting (A, B, C) = (a*G1, b*G2, c*G1) satisfies the verification
equation, which makes it a genuine end-to-end test of the verifier.

Warning:
    Anyone holding a DevelopmentSetup can forge proofs. Never load its key
    into a deployment that guards real value.
"""

import logging
import random
import secrets
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from zkmixer.crypto.curve import G1, G2, _multiply_g1, _multiply_g2
from zkmixer.crypto.field import CURVE_ORDER, check_scalars, mod_inverse
from zkmixer.crypto.groth16 import Proof, VerificationKey
from zkmixer.exceptions import PublicInputLengthMismatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trapdoor:
    """Setup exponents; knowledge of these allows forging proofs."""

    alpha: int
    beta: int
    gamma: int
    delta: int
    ic: Tuple[int, ...]


class DevelopmentSetup:
    """
    Generate a verification key and simulate proofs against it.

    Args:
        num_public_inputs: Length of the statement the key verifies
        seed: Optional seed for reproducible keys and proofs
    """

    def __init__(self, num_public_inputs: int, seed: Optional[int] = None):
        if num_public_inputs < 0:
            raise ValueError("num_public_inputs must be non-negative")

        self._rng = random.Random(seed) if seed is not None else None
        self.trapdoor = Trapdoor(
            alpha=self._scalar(),
            beta=self._scalar(),
            gamma=self._scalar(),
            delta=self._scalar(),
            ic=tuple(self._scalar() for _ in range(num_public_inputs + 1)),
        )
        t = self.trapdoor
        self.key = VerificationKey(
            alpha1=_multiply_g1(G1, t.alpha),
            beta2=_multiply_g2(G2, t.beta),
            gamma2=_multiply_g2(G2, t.gamma),
            delta2=_multiply_g2(G2, t.delta),
            ic=tuple(_multiply_g1(G1, u) for u in t.ic),
        )
        logger.warning("Development setup created; its trapdoor can forge proofs")

    def _scalar(self) -> int:
        # Non-zero scalar
        if self._rng is not None:
            return self._rng.randrange(1, CURVE_ORDER)
        return secrets.randbelow(CURVE_ORDER - 1) + 1

    def prove(self, public_inputs: Sequence[int]) -> Proof:
        """
        Produce a valid proof for public_inputs using the trapdoor.

        Raises:
            PublicInputLengthMismatch: If the statement has the wrong length
            FieldElementOutOfRange: If an input is not reduced mod R
        """
        t = self.trapdoor
        if len(public_inputs) != len(t.ic) - 1:
            raise PublicInputLengthMismatch(
                f"Key expects {len(t.ic) - 1} public inputs, got {len(public_inputs)}"
            )
        inputs = check_scalars(public_inputs)

        s = t.ic[0]
        for u, x in zip(t.ic[1:], inputs):
            s = (s + u * x) % CURVE_ORDER

        a = self._scalar()
        b = self._scalar()
        c = (a * b - t.alpha * t.beta - s * t.gamma) * mod_inverse(t.delta, CURVE_ORDER)
        c %= CURVE_ORDER

        return Proof(
            a=_multiply_g1(G1, a),
            b=_multiply_g2(G2, b),
            c=_multiply_g1(G1, c),
            public_inputs=inputs,
        )
