"""Groth16 proof verification on BN254.

Verification equation:

    e(A, B) = e(alpha1, beta2) * e(vk_x, gamma2) * e(C, delta2)

    where vk_x = ic[0] + sum(ic[i + 1] * input[i])

It is checked as ONE product of four pairings:

    e(A, B) * e(-alpha1, beta2) * e(-vk_x, gamma2) * e(-C, delta2) == 1

Verifying keys and proofs can be loaded from the JSON layout written by
snarkjs (``vk_alpha_1``, ``vk_beta_2``, ..., ``IC`` and ``pi_a``, ``pi_b``,
``pi_c``). Projective coordinates are accepted as long as z is 1 (or 0 for
the point at infinity).

Example Usage:
    >>> from zkmixer.crypto.groth16 import VerificationKey, Proof, verify
    >>>
    >>> key = VerificationKey.load("verification_key.json")
    >>> proof = Proof.from_snarkjs(proof_json, public_signals)
    >>> verify(proof, key, proof.public_inputs)
    True
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

from zkmixer.crypto.curve import (
    INFINITY_G1,
    INFINITY_G2,
    G1Point,
    G2Point,
    _add_g1,
    _multiply_g1,
    _negate_g1,
    _parse_int,
    validate_g1,
    validate_g2,
)
from zkmixer.crypto.field import check_scalars
from zkmixer.crypto.pairing import pairing_product_check
from zkmixer.exceptions import (
    InvalidVerificationKey,
    MalformedInputError,
    PublicInputLengthMismatch,
)

logger = logging.getLogger(__name__)


def _g1_from_json(coords: Sequence) -> G1Point:
    if len(coords) >= 3 and _parse_int(coords[2]) == 0:
        return INFINITY_G1
    if len(coords) >= 3 and _parse_int(coords[2]) != 1:
        raise MalformedInputError("G1 point must be affine (z = 1)")
    return G1Point.from_list(coords)


def _g2_from_json(coords: Sequence) -> G2Point:
    if len(coords) >= 3:
        z = (_parse_int(coords[2][0]), _parse_int(coords[2][1]))
        if z == (0, 0):
            return INFINITY_G2
        if z != (1, 0):
            raise MalformedInputError("G2 point must be affine (z = 1)")
    return G2Point.from_list(coords)


@dataclass(frozen=True)
class VerificationKey:
    """
    Groth16 verification key produced by a trusted setup.

    Every point is validated when the key is built; a key object that
    exists is therefore known to be well formed, and it is never mutated.
    """

    alpha1: G1Point
    beta2: G2Point
    gamma2: G2Point
    delta2: G2Point
    ic: Tuple[G1Point, ...]

    def __post_init__(self):
        object.__setattr__(self, "ic", tuple(self.ic))
        if len(self.ic) < 1:
            raise InvalidVerificationKey("IC must contain at least one point")
        try:
            validate_g1(self.alpha1, "alpha1")
            validate_g2(self.beta2, "beta2")
            validate_g2(self.gamma2, "gamma2")
            validate_g2(self.delta2, "delta2")
            for i, point in enumerate(self.ic):
                validate_g1(point, f"ic[{i}]")
        except MalformedInputError as e:
            raise InvalidVerificationKey(f"Invalid verification key: {e}") from e

    @property
    def num_public_inputs(self) -> int:
        return len(self.ic) - 1

    @classmethod
    def from_snarkjs(cls, data: Dict[str, Any]) -> "VerificationKey":
        """Build a key from snarkjs ``verification_key.json`` contents."""
        try:
            return cls(
                alpha1=_g1_from_json(data["vk_alpha_1"]),
                beta2=_g2_from_json(data["vk_beta_2"]),
                gamma2=_g2_from_json(data["vk_gamma_2"]),
                delta2=_g2_from_json(data["vk_delta_2"]),
                ic=tuple(_g1_from_json(p) for p in data["IC"]),
            )
        except InvalidVerificationKey:
            raise
        except (KeyError, TypeError, IndexError, MalformedInputError) as e:
            raise InvalidVerificationKey(f"Malformed verification key JSON: {e}") from e

    @classmethod
    def load(cls, path: Union[str, Path]) -> "VerificationKey":
        """Load a snarkjs verification key from disk."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise InvalidVerificationKey(f"Cannot read verification key {path}: {e}") from e
        key = cls.from_snarkjs(data)
        logger.info("Loaded verification key from %s (%d public inputs)", path, key.num_public_inputs)
        return key

    def to_snarkjs(self) -> Dict[str, Any]:
        """Serialize to the snarkjs JSON layout."""
        return {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": self.num_public_inputs,
            "vk_alpha_1": self.alpha1.to_list() + ["1"],
            "vk_beta_2": self.beta2.to_list() + [["1", "0"]],
            "vk_gamma_2": self.gamma2.to_list() + [["1", "0"]],
            "vk_delta_2": self.delta2.to_list() + [["1", "0"]],
            "IC": [p.to_list() + ["1"] for p in self.ic],
        }


@dataclass(frozen=True)
class Proof:
    """Groth16 proof (A, B, C) together with the public inputs it claims."""

    a: G1Point
    b: G2Point
    c: G1Point
    public_inputs: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "public_inputs", tuple(self.public_inputs))

    @classmethod
    def from_snarkjs(cls, proof: Dict[str, Any], public_signals: Sequence[Any]) -> "Proof":
        """
        Build a proof from snarkjs ``proof.json`` and ``public.json``.

        Raises:
            MalformedInputError: If the JSON cannot be parsed
        """
        try:
            return cls(
                a=_g1_from_json(proof["pi_a"]),
                b=_g2_from_json(proof["pi_b"]),
                c=_g1_from_json(proof["pi_c"]),
                public_inputs=tuple(_parse_int(s) for s in public_signals),
            )
        except (KeyError, TypeError, IndexError) as e:
            raise MalformedInputError(f"Malformed proof JSON: {e}") from e

    def to_snarkjs(self) -> Tuple[Dict[str, Any], List[str]]:
        """Serialize to (proof.json, public.json) contents."""
        proof = {
            "pi_a": self.a.to_list() + ["1"],
            "pi_b": self.b.to_list() + [["1", "0"]],
            "pi_c": self.c.to_list() + ["1"],
            "protocol": "groth16",
            "curve": "bn128",
        }
        return proof, [str(x) for x in self.public_inputs]


def _check_statement(
    proof: Proof, key: VerificationKey, public_inputs: Sequence[int]
) -> Tuple[int, ...]:
    if not isinstance(proof, Proof) or not isinstance(key, VerificationKey):
        raise MalformedInputError("Expected a Proof and a VerificationKey")

    expected = key.num_public_inputs
    if len(public_inputs) != expected or len(proof.public_inputs) != expected:
        raise PublicInputLengthMismatch(
            f"Key expects {expected} public inputs, got {len(public_inputs)} "
            f"(proof carries {len(proof.public_inputs)})"
        )

    inputs = check_scalars(public_inputs, "public_input")
    if tuple(proof.public_inputs) != inputs:
        raise MalformedInputError("Proof public inputs differ from the supplied statement")

    validate_g1(proof.a, "A")
    validate_g2(proof.b, "B")
    validate_g1(proof.c, "C")
    return inputs


def compute_vk_x(key: VerificationKey, inputs: Sequence[int]) -> G1Point:
    """Compute ic[0] + sum(ic[i + 1] * inputs[i]) for validated inputs."""
    vk_x = key.ic[0]
    for coefficient, base in zip(inputs, key.ic[1:]):
        vk_x = _add_g1(vk_x, _multiply_g1(base, coefficient))
    return vk_x


def verify(proof: Proof, key: VerificationKey, public_inputs: Sequence[int]) -> bool:
    """
    Verify a Groth16 proof.

    Pure and deterministic. Fails closed: malformed input of any kind
    (wrong lengths, unreduced inputs, invalid points) yields False.

    Args:
        proof: Proof (A, B, C) and the public inputs it was made for
        key: Verification key
        public_inputs: Statement the caller expects the proof to prove

    Returns:
        bool: True if the proof is valid for the statement
    """
    try:
        inputs = _check_statement(proof, key, public_inputs)
    except MalformedInputError as e:
        logger.debug("Proof rejected before pairing: %s", e.code)
        return False
    except TypeError:
        logger.debug("Proof rejected before pairing: unsupported input types")
        return False

    vk_x = compute_vk_x(key, inputs)
    return pairing_product_check(
        [proof.a, _negate_g1(key.alpha1), _negate_g1(vk_x), _negate_g1(proof.c)],
        [proof.b, key.beta2, key.gamma2, key.delta2],
    )


class Groth16Verifier:
    """Verifier bound to one immutable verification key."""

    def __init__(self, key: VerificationKey):
        if not isinstance(key, VerificationKey):
            raise InvalidVerificationKey("Groth16Verifier requires a VerificationKey")
        self._key = key

    @property
    def key(self) -> VerificationKey:
        return self._key

    def verify(self, proof: Proof, public_inputs: Sequence[int]) -> bool:
        """Verify proof against this verifier's key."""
        return verify(proof, self._key, public_inputs)
