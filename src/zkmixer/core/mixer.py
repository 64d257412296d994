"""Mixing ledger: pools, deposits and nullifier-guarded withdrawals.

Transaction flow:

    DEPOSIT
        1. User forms a note (secret, amount, nullifier_seed) off-line
        2. Commitment H(secret, amount, nullifier_seed) is submitted with the
           pool id and amount; no proof is needed
        3. Depositor's account is debited, the commitment recorded

    ROOT FEED
        An administrator folds the pool's commitments into a Merkle tree and
        publishes the root through ``update_merkle_root``. A bounded history
        of earlier roots stays valid so in-flight proofs are not invalidated.

    WITHDRAWAL
        1. Prover shows, in zero knowledge, that it knows the opening of a
           commitment under a published root, and derives its nullifier
        2. Public statement: (merkle_root, nullifier, recipient, amount)
        3. The ledger rebuilds that statement from the call arguments, checks
           the nullifier is unused and the Groth16 proof verifies
        4. Nullifier is marked used and the recipient is credited

Invariants:
    - A nullifier is used at most once
    - A commitment is deposited at most once
    - Pool balance never goes negative
    - Every mutation happens after all checks and after the settlement call

Locking:
    Each pool has its own lock; the commitment and nullifier tables share a
    registry lock. Locks are always taken pool first, registry second.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from zkmixer.config import Settings, get_settings
from zkmixer.core.commitment import (
    parse_commitment,
    parse_nullifier,
    recipient_to_field,
    withdrawal_public_inputs,
)
from zkmixer.core.ledger import Ledger
from zkmixer.crypto.field import CURVE_ORDER
from zkmixer.crypto.groth16 import Groth16Verifier, Proof, VerificationKey
from zkmixer.exceptions import (
    AmountExceedsPoolBalance,
    AmountOutOfRange,
    CommitmentAlreadyExists,
    DepositAlreadyWithdrawn,
    DepositNotFound,
    FieldElementOutOfRange,
    InvalidCommitmentError,
    InvalidDelayRange,
    InvalidMerkleDepth,
    InvalidMerkleRoot,
    InvalidProof,
    InvalidVerificationKey,
    MixerNotPaused,
    MixerPaused,
    NullifierAlreadyUsed,
    PoolFull,
    PoolInactive,
    Unauthorized,
    ZKMixerException,
)
from zkmixer.security.auth import AdminCapability
from zkmixer.utils.encoding import bytes_to_hex, ensure_bytes32, field_to_bytes

logger = logging.getLogger(__name__)

# (merkle_root, nullifier, recipient, amount)
WITHDRAWAL_PUBLIC_INPUTS = 4
EMPTY_ROOT = b"\x00" * 32


@dataclass
class Pool:
    """Mixing pool configuration and running totals."""

    id: int
    min_delay: int
    max_delay: int
    merkle_depth: int
    root_history_size: int
    merkle_root: bytes = EMPTY_ROOT
    total_amount: int = 0
    participant_count: int = 0
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)
    root_history: Deque[bytes] = field(init=False)

    def __post_init__(self):
        self.root_history = deque(maxlen=self.root_history_size)

    def knows_root(self, root: bytes) -> bool:
        if root == EMPTY_ROOT:
            return False
        return root == self.merkle_root or root in self.root_history

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pool_id": self.id,
            "total_amount": self.total_amount,
            "participant_count": self.participant_count,
            "min_delay": self.min_delay,
            "max_delay": self.max_delay,
            "merkle_depth": self.merkle_depth,
            "merkle_root": bytes_to_hex(self.merkle_root),
            "recent_roots": [bytes_to_hex(r) for r in self.root_history],
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Deposit:
    """Public record of an accepted commitment. Never holds the opening."""

    commitment: bytes
    amount: int
    pool_id: int
    leaf_index: int
    timestamp: datetime = field(default_factory=datetime.now)
    is_withdrawn: bool = False

    def mark_withdrawn(self) -> None:
        if self.is_withdrawn:
            raise DepositAlreadyWithdrawn(
                f"Deposit {bytes_to_hex(self.commitment)} already withdrawn"
            )
        self.is_withdrawn = True

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "commitment": bytes_to_hex(self.commitment),
            "amount": self.amount,
            "pool_id": self.pool_id,
            "leaf_index": self.leaf_index,
            "timestamp": self.timestamp.isoformat(),
            "is_withdrawn": self.is_withdrawn,
        }


@dataclass
class WithdrawalReceipt:
    """Receipt for a successful withdrawal."""

    transaction_hash: str
    nullifier: bytes
    recipient: str
    amount: int
    pool_id: int
    merkle_root: bytes
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "transaction_hash": self.transaction_hash,
            "nullifier": bytes_to_hex(self.nullifier),
            "recipient": self.recipient,
            "amount": self.amount,
            "pool_id": self.pool_id,
            "merkle_root": bytes_to_hex(self.merkle_root),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class WithdrawalRequest:
    """One entry of a batch withdrawal."""

    nullifier: bytes
    recipient: str
    amount: int
    proof: Proof


@dataclass
class BatchWithdrawalResult:
    """Outcome of one batch entry: a receipt or the error code that stopped it."""

    index: int
    receipt: Optional[WithdrawalReceipt] = None
    error_code: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.receipt is not None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "success": self.success,
            "receipt": self.receipt.to_dict() if self.receipt else None,
            "error_code": self.error_code,
        }


def _check_amount(amount: int, low: int, high: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise AmountOutOfRange("Amount must be an integer")
    if amount < low or amount > high:
        raise AmountOutOfRange(f"Amount {amount} outside [{low}, {high}]")
    return amount


class MixingLedger:
    """
    Mixer core owning the pool, deposit and nullifier tables.

    Args:
        verifier: Groth16 verifier (or bare key) for withdrawal proofs over
            four public inputs
        ledger: Settlement layer that moves value
        admin: Capability required by administrative operations
        settings: Deposit bounds and root history size; process settings if None
    """

    def __init__(
        self,
        verifier: Union[Groth16Verifier, VerificationKey],
        ledger: Ledger,
        admin: AdminCapability,
        settings: Optional[Settings] = None,
    ):
        if isinstance(verifier, VerificationKey):
            verifier = Groth16Verifier(verifier)
        if not isinstance(verifier, Groth16Verifier):
            raise InvalidVerificationKey("MixingLedger requires a Groth16 verifier")
        if verifier.key.num_public_inputs != WITHDRAWAL_PUBLIC_INPUTS:
            raise InvalidVerificationKey(
                f"Withdrawal key must take {WITHDRAWAL_PUBLIC_INPUTS} public inputs, "
                f"got {verifier.key.num_public_inputs}"
            )
        if not isinstance(admin, AdminCapability):
            raise Unauthorized("MixingLedger requires an AdminCapability")

        self.verifier = verifier
        self.ledger = ledger
        self.settings = settings or get_settings()
        self._admin = admin

        self._pools: Dict[int, Pool] = {}
        self._pool_locks: Dict[int, threading.Lock] = {}
        self._deposits: Dict[bytes, Deposit] = {}
        self._pool_commitments: Dict[int, List[bytes]] = {}
        self._nullifiers: Dict[bytes, datetime] = {}
        # root -> owning pool, for current and historical roots
        self._root_owner: Dict[bytes, int] = {}
        self._registry_lock = threading.Lock()
        self._next_pool_id = 1
        self._paused = False
        self._withdrawal_count = 0

    # ---------------------------------------------------------------- admin

    def _require_admin(self, capability: AdminCapability) -> None:
        if not self._admin.matches(capability):
            raise Unauthorized("Administrative capability required")

    def create_pool(
        self,
        capability: AdminCapability,
        min_delay: int,
        max_delay: int,
        merkle_depth: int,
    ) -> Pool:
        """
        Create a new active pool.

        Raises:
            Unauthorized: If capability is not the admin capability
            InvalidDelayRange: If delays are negative or min_delay > max_delay
            InvalidMerkleDepth: If depth is outside [1, max_merkle_depth]
        """
        self._require_admin(capability)
        for name, value in (("min_delay", min_delay), ("max_delay", max_delay)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidDelayRange(f"{name} must be a non-negative integer")
        if min_delay > max_delay:
            raise InvalidDelayRange("Invalid delay range")
        if (
            isinstance(merkle_depth, bool)
            or not isinstance(merkle_depth, int)
            or not 1 <= merkle_depth <= self.settings.max_merkle_depth
        ):
            raise InvalidMerkleDepth("Invalid merkle depth")

        with self._registry_lock:
            pool = Pool(
                id=self._next_pool_id,
                min_delay=min_delay,
                max_delay=max_delay,
                merkle_depth=merkle_depth,
                root_history_size=self.settings.root_history_size,
            )
            self._pools[pool.id] = pool
            self._pool_locks[pool.id] = threading.Lock()
            self._pool_commitments[pool.id] = []
            self._next_pool_id += 1

        logger.info(
            "Created pool %d (delay %d..%d, depth %d)", pool.id, min_delay, max_delay, merkle_depth
        )
        return pool

    def update_merkle_root(
        self, capability: AdminCapability, pool_id: int, new_root: Union[bytes, str, int]
    ) -> None:
        """
        Publish a new anonymity-set root for a pool.

        The previous root moves into the pool's bounded history and stays
        acceptable for withdrawals until it is evicted.

        Raises:
            Unauthorized: If capability is not the admin capability
            PoolInactive: If the pool does not exist
            InvalidMerkleRoot: If the root is not a non-zero field element or
                belongs to another pool
        """
        self._require_admin(capability)
        try:
            root = ensure_bytes32(new_root)
        except FieldElementOutOfRange as e:
            raise InvalidMerkleRoot(f"Invalid merkle root: {e}") from e
        if root == EMPTY_ROOT:
            raise InvalidMerkleRoot("Merkle root must be non-zero")

        pool, lock = self._get_pool(pool_id)
        with lock, self._registry_lock:
            owner = self._root_owner.get(root)
            if owner is not None and owner != pool_id:
                raise InvalidMerkleRoot(f"Root is already published for pool {owner}")
            if root == pool.merkle_root:
                return

            evicted = None
            if pool.merkle_root != EMPTY_ROOT:
                if len(pool.root_history) == pool.root_history.maxlen:
                    evicted = pool.root_history[0]
                pool.root_history.append(pool.merkle_root)
            pool.merkle_root = root
            self._root_owner[root] = pool_id
            if evicted is not None and not pool.knows_root(evicted):
                self._root_owner.pop(evicted, None)

        logger.info("Pool %d merkle root updated to %s", pool_id, bytes_to_hex(root))

    def set_pool_active(self, capability: AdminCapability, pool_id: int, active: bool) -> None:
        """Activate or deactivate a pool."""
        self._require_admin(capability)
        pool, lock = self._get_pool(pool_id)
        with lock:
            pool.is_active = bool(active)
        logger.info("Pool %d %s", pool_id, "activated" if active else "deactivated")

    def pause(self, capability: AdminCapability) -> None:
        """Reject all deposits and withdrawals until unpaused."""
        self._require_admin(capability)
        with self._registry_lock:
            self._paused = True
        logger.warning("Mixer paused")

    def unpause(self, capability: AdminCapability) -> None:
        self._require_admin(capability)
        with self._registry_lock:
            self._paused = False
        logger.info("Mixer unpaused")

    @property
    def paused(self) -> bool:
        return self._paused

    def mark_deposit_withdrawn(self, capability: AdminCapability, commitment: bytes) -> Deposit:
        """
        Reconcile a deposit as withdrawn.

        Withdrawals cannot name their deposit without breaking unlinkability,
        so this transition is driven by an administrator (for example after
        the depositor discloses the note).

        Raises:
            DepositNotFound: If the commitment was never deposited
            DepositAlreadyWithdrawn: If it is already marked
        """
        self._require_admin(capability)
        key = field_to_bytes(parse_commitment(commitment))
        with self._registry_lock:
            deposit = self._deposits.get(key)
            if deposit is None:
                raise DepositNotFound(f"No deposit for commitment {bytes_to_hex(key)}")
            deposit.mark_withdrawn()
        logger.info("Deposit %s marked withdrawn", bytes_to_hex(key))
        return deposit

    def emergency_withdraw(self, capability: AdminCapability, pool_id: int, recipient: str) -> int:
        """
        Drain a pool's balance to recipient while the mixer is paused.

        Outstanding notes of the pool can no longer be withdrawn once their
        value has left it; the balance drops to zero and is returned.

        Raises:
            Unauthorized: If capability is not the admin capability
            MixerNotPaused: If the mixer is running
            PoolInactive: If the pool does not exist
            LedgerError: If the recipient cannot be credited
        """
        self._require_admin(capability)
        pool, lock = self._get_pool(pool_id)
        with lock:
            with self._registry_lock:
                if not self._paused:
                    raise MixerNotPaused("Emergency withdrawal requires a paused mixer")
                amount = pool.total_amount
                if amount > 0:
                    self.ledger.credit(recipient, amount)
            pool.total_amount = 0

        logger.warning("Emergency withdrawal of %d from pool %d", amount, pool_id)
        return amount

    # ------------------------------------------------------------ operations

    def _get_pool(self, pool_id: int) -> Tuple[Pool, threading.Lock]:
        with self._registry_lock:
            pool = self._pools.get(pool_id)
            lock = self._pool_locks.get(pool_id)
        if pool is None:
            raise PoolInactive(f"Pool {pool_id} does not exist")
        return pool, lock

    def _check_not_paused(self) -> None:
        if self._paused:
            raise MixerPaused("Mixer is paused")

    def deposit(self, commitment: bytes, pool_id: int, amount: int, depositor: str) -> Deposit:
        """
        Deposit amount under commitment into a pool.

        Args:
            commitment: 32-byte commitment H(secret, amount, nullifier_seed)
            pool_id: Target pool
            amount: Value in base units
            depositor: Ledger account to debit

        Returns:
            Deposit: Public record of the deposit

        Raises:
            InvalidCommitmentError: If commitment is not a non-zero field element
            AmountOutOfRange: If amount is outside the configured bounds
            MixerPaused: If the mixer is paused
            PoolInactive: If the pool is unknown or inactive
            PoolFull: If the pool's Merkle tree has no free leaf
            CommitmentAlreadyExists: If commitment was deposited before
            LedgerError: If the depositor cannot be debited
        """
        try:
            value = parse_commitment(commitment)
            if value == 0:
                raise InvalidCommitmentError("Commitment must be non-zero")
            key = field_to_bytes(value)
            _check_amount(amount, self.settings.min_deposit, self.settings.max_deposit)
            self._check_not_paused()

            pool, lock = self._get_pool(pool_id)
            with lock:
                if not pool.is_active:
                    raise PoolInactive("Pool not active")
                if pool.participant_count >= 2 ** pool.merkle_depth:
                    raise PoolFull(
                        f"Pool {pool_id} holds its maximum of {2 ** pool.merkle_depth} deposits"
                    )
                with self._registry_lock:
                    self._check_not_paused()
                    if key in self._deposits:
                        raise CommitmentAlreadyExists(
                            f"Commitment {bytes_to_hex(key)} already deposited"
                        )
                    self.ledger.debit(depositor, amount)

                    deposit = Deposit(
                        commitment=key,
                        amount=amount,
                        pool_id=pool_id,
                        leaf_index=pool.participant_count,
                    )
                    self._deposits[key] = deposit
                    self._pool_commitments[pool_id].append(key)
                pool.total_amount += amount
                pool.participant_count += 1
        except ZKMixerException as e:
            logger.warning("Deposit rejected: %s", e.code)
            raise

        logger.info("Deposit of %d into pool %d (leaf %d)", amount, pool_id, deposit.leaf_index)
        return deposit

    def withdraw(
        self, nullifier: bytes, recipient: str, amount: int, proof: Proof
    ) -> WithdrawalReceipt:
        """
        Withdraw amount to recipient by spending nullifier.

        The pool is the one that published ``proof.public_inputs[0]`` as a
        current or recent root. The statement the proof must satisfy is
        rebuilt from the arguments, never taken from the proof.

        Raises:
            InvalidNullifierError: If nullifier is not a field element
            InvalidRecipient: If recipient is empty or the zero address
            AmountOutOfRange: If amount is not positive
            MixerPaused: If the mixer is paused
            NullifierAlreadyUsed: If the nullifier was spent before
            InvalidProof: If the root is unknown, the statement differs or
                the proof does not verify
            PoolInactive: If the pool was deactivated
            AmountExceedsPoolBalance: If the pool holds less than amount
            LedgerError: If the recipient cannot be credited
        """
        try:
            key = field_to_bytes(parse_nullifier(nullifier))
            recipient_to_field(recipient)
            _check_amount(amount, 1, CURVE_ORDER - 1)
            self._check_not_paused()
            self._check_nullifier_unused(key)

            pool_id, root = self._resolve_root(proof)
            expected = withdrawal_public_inputs(root, key, recipient, amount)
            if tuple(proof.public_inputs) != expected:
                raise InvalidProof("Invalid proof")

            pool, lock = self._get_pool(pool_id)
            if amount > pool.total_amount:
                raise AmountExceedsPoolBalance("Amount exceeds pool balance")
            if not self.verifier.verify(proof, expected):
                raise InvalidProof("Invalid proof")

            with lock:
                if not pool.is_active:
                    raise PoolInactive("Pool not active")
                if not pool.knows_root(root):
                    raise InvalidProof("Invalid proof")
                if amount > pool.total_amount:
                    raise AmountExceedsPoolBalance("Amount exceeds pool balance")
                with self._registry_lock:
                    self._check_not_paused()
                    if key in self._nullifiers:
                        raise NullifierAlreadyUsed("Nullifier already used")
                    self.ledger.credit(recipient, amount)
                    self._nullifiers[key] = datetime.now()
                    self._withdrawal_count += 1
                pool.total_amount -= amount
        except ZKMixerException as e:
            logger.warning("Withdrawal rejected: %s", e.code)
            raise

        receipt = WithdrawalReceipt(
            transaction_hash=uuid.uuid4().hex,
            nullifier=key,
            recipient=recipient,
            amount=amount,
            pool_id=pool_id,
            merkle_root=root,
        )
        logger.info("Withdrawal of %d from pool %d", amount, pool_id)
        return receipt

    def _check_nullifier_unused(self, key: bytes) -> None:
        with self._registry_lock:
            if key in self._nullifiers:
                raise NullifierAlreadyUsed("Nullifier already used")

    def _resolve_root(self, proof: Proof) -> Tuple[int, bytes]:
        if not isinstance(proof, Proof) or len(proof.public_inputs) != WITHDRAWAL_PUBLIC_INPUTS:
            raise InvalidProof("Invalid proof")
        try:
            root = field_to_bytes(proof.public_inputs[0])
        except FieldElementOutOfRange as e:
            raise InvalidProof("Invalid proof") from e
        with self._registry_lock:
            pool_id = self._root_owner.get(root)
        if pool_id is None:
            raise InvalidProof("Invalid proof")
        return pool_id, root

    def batch_withdraw(
        self, requests: Iterable[Union[WithdrawalRequest, Sequence]]
    ) -> List[BatchWithdrawalResult]:
        """
        Process several withdrawals independently.

        A failing entry does not affect the others; its error code is
        reported in its result.
        """
        results = []
        for index, request in enumerate(requests):
            if not isinstance(request, WithdrawalRequest):
                request = WithdrawalRequest(*request)
            try:
                receipt = self.withdraw(
                    request.nullifier, request.recipient, request.amount, request.proof
                )
            except ZKMixerException as e:
                results.append(BatchWithdrawalResult(index=index, error_code=e.code))
            else:
                results.append(BatchWithdrawalResult(index=index, receipt=receipt))
        succeeded = sum(1 for r in results if r.success)
        logger.info("Batch withdrawal: %d of %d succeeded", succeeded, len(results))
        return results

    # --------------------------------------------------------------- queries

    def get_pool(self, pool_id: int) -> Optional[Pool]:
        with self._registry_lock:
            return self._pools.get(pool_id)

    def get_pool_info(self, pool_id: int) -> Optional[dict]:
        pool = self.get_pool(pool_id)
        if pool is None:
            return None
        lock = self._pool_locks[pool_id]
        with lock:
            return pool.to_dict()

    def get_pool_commitments(self, pool_id: int) -> List[bytes]:
        """Commitments of a pool in deposit order (the Merkle leaf order)."""
        with self._registry_lock:
            if pool_id not in self._pool_commitments:
                raise PoolInactive(f"Pool {pool_id} does not exist")
            return list(self._pool_commitments[pool_id])

    def get_deposit_info(self, commitment: bytes) -> Optional[dict]:
        key = field_to_bytes(parse_commitment(commitment))
        with self._registry_lock:
            deposit = self._deposits.get(key)
            return deposit.to_dict() if deposit else None

    def is_nullifier_used(self, nullifier: bytes) -> bool:
        key = field_to_bytes(parse_nullifier(nullifier))
        with self._registry_lock:
            return key in self._nullifiers

    def is_known_root(self, root: Union[bytes, str, int], pool_id: Optional[int] = None) -> bool:
        """Whether root is a current or recent root (of pool_id, if given)."""
        try:
            key = ensure_bytes32(root)
        except FieldElementOutOfRange:
            return False
        with self._registry_lock:
            owner = self._root_owner.get(key)
        if owner is None:
            return False
        return pool_id is None or owner == pool_id

    def get_statistics(self) -> dict:
        """Get mixer statistics."""
        with self._registry_lock:
            pools = list(self._pools.values())
            return {
                "total_pools": len(pools),
                "active_pools": sum(1 for p in pools if p.is_active),
                "total_deposits": len(self._deposits),
                "total_withdrawals": self._withdrawal_count,
                "total_value_locked": sum(p.total_amount for p in pools),
                "used_nullifiers": len(self._nullifiers),
                "paused": self._paused,
            }
