"""Custom exceptions for the ZK-Mixer system.

Errors fall into three families:

    MalformedInputError  - rejected before any state is read
    ProtocolViolation    - rejected after a state lookup, nothing mutated
    InvalidProof         - proof did not verify; never says which check failed

Every concrete error carries a stable ``code`` used by the REST layer.
"""


class ZKMixerException(Exception):
    """Base exception for all ZK-Mixer errors."""

    code = "zkmixer_error"


# Malformed input
class MalformedInputError(ZKMixerException):
    """Base exception for inputs that are structurally invalid."""

    code = "malformed_input"


class FieldElementOutOfRange(MalformedInputError):
    """Raised when an integer is not reduced into its field."""

    code = "field_element_out_of_range"


class PointNotOnCurve(MalformedInputError):
    """Raised when a point fails curve or subgroup validation."""

    code = "point_not_on_curve"


class NoInverseExists(MalformedInputError):
    """Raised when a modular inverse is requested for a non-unit."""

    code = "no_inverse_exists"


class PublicInputLengthMismatch(MalformedInputError):
    """Raised when public input vectors disagree in length."""

    code = "public_input_length_mismatch"


class InvalidCommitmentError(MalformedInputError):
    """Raised when a commitment is not a 32-byte field element."""

    code = "invalid_commitment"


class InvalidNullifierError(MalformedInputError):
    """Raised when a nullifier is not a 32-byte field element."""

    code = "invalid_nullifier"


class InvalidRecipient(MalformedInputError):
    """Raised when a withdrawal recipient is empty or the zero address."""

    code = "invalid_recipient"


class InvalidVerificationKey(MalformedInputError):
    """Raised when a verification key cannot be parsed or validated."""

    code = "invalid_verification_key"


# Protocol violations
class ProtocolViolation(ZKMixerException):
    """Base exception for requests that conflict with mixer state."""

    code = "protocol_violation"


class NullifierAlreadyUsed(ProtocolViolation):
    """Raised when attempting to spend the same nullifier twice."""

    code = "nullifier_already_used"


class CommitmentAlreadyExists(ProtocolViolation):
    """Raised when a commitment has already been deposited."""

    code = "commitment_already_exists"


class PoolInactive(ProtocolViolation):
    """Raised when a pool is unknown or deactivated."""

    code = "pool_inactive"


class AmountOutOfRange(ProtocolViolation):
    """Raised when an amount lies outside the configured bounds."""

    code = "amount_out_of_range"


class AmountExceedsPoolBalance(ProtocolViolation):
    """Raised when a withdrawal asks for more than the pool holds."""

    code = "amount_exceeds_pool_balance"


class InvalidDelayRange(ProtocolViolation):
    """Raised when min_delay > max_delay."""

    code = "invalid_delay_range"


class InvalidMerkleDepth(ProtocolViolation):
    """Raised when a pool's Merkle depth is unsupported."""

    code = "invalid_merkle_depth"


class InvalidMerkleRoot(ProtocolViolation):
    """Raised when a Merkle root is out of range or owned by another pool."""

    code = "invalid_merkle_root"


class MixerPaused(ProtocolViolation):
    """Raised when the mixer is paused."""

    code = "mixer_paused"


class MixerNotPaused(ProtocolViolation):
    """Raised when an emergency operation is attempted on a running mixer."""

    code = "mixer_not_paused"


class PoolFull(ProtocolViolation):
    """Raised when a pool already holds 2^merkle_depth commitments."""

    code = "pool_full"


class DepositAlreadyWithdrawn(ProtocolViolation):
    """Raised when reconciling a deposit that is already withdrawn."""

    code = "deposit_already_withdrawn"


class DepositNotFound(ProtocolViolation):
    """Raised when a deposit record does not exist."""

    code = "deposit_not_found"


class Unauthorized(ProtocolViolation):
    """Raised when an administrative call lacks a valid capability."""

    code = "unauthorized"


# Proof errors
class InvalidProof(ZKMixerException):
    """Raised when proof verification fails."""

    code = "invalid_proof"


# Ledger collaborator errors
class LedgerError(ZKMixerException):
    """Base exception for settlement layer failures."""

    code = "ledger_error"


class InsufficientFunds(LedgerError):
    """Raised when a debit exceeds the account balance."""

    code = "insufficient_funds"


# Merkle Tree Errors
class MerkleTreeError(ZKMixerException):
    """Base exception for Merkle tree errors."""

    code = "merkle_tree_error"


class TreeHeightExceededError(MerkleTreeError):
    """Raised when the tree is full."""

    code = "tree_full"


class InvalidLeafIndexError(MerkleTreeError):
    """Raised when leaf index is invalid."""

    code = "invalid_leaf_index"


# Storage Errors
class StorageError(ZKMixerException):
    """Base exception for storage errors."""

    code = "storage_error"


class DeserializationError(StorageError):
    """Raised when deserialization fails."""

    code = "deserialization_error"
