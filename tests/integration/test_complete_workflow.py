"""Integration tests for the complete ZK-Mixer system."""

import pytest

from zkmixer.core.commitment import CommitmentScheme, Note
from zkmixer.core.merkle_tree import MerkleTree
from zkmixer.core.mixer import MixingLedger, WithdrawalRequest
from zkmixer.exceptions import (
    CommitmentAlreadyExists,
    InvalidProof,
    NullifierAlreadyUsed,
)
from zkmixer.storage.database import DatabaseManager, SqlLedger, TransferType

ALICE_RECIPIENT = "0x00000000000000000000000000000000000000a1"
BOB_RECIPIENT = "0x00000000000000000000000000000000000000b0"


class TestCompleteMixerWorkflow:
    """Tests for complete mixer workflows."""

    def test_single_deposit_and_withdrawal(self, mixer, admin, ledger, make_withdrawal_proof):
        """Deposit H(1, 100, 2), publish the root, withdraw exactly once."""
        # Step 1: Create pool
        pool = mixer.create_pool(admin, 3600, 86400, 20)

        # Step 2: Deposit
        commitment = CommitmentScheme.compute_commitment(1, 100, 2)
        mixer.deposit(commitment, pool.id, 100, "alice")
        info = mixer.get_pool_info(pool.id)
        assert info["total_amount"] == 100
        assert info["participant_count"] == 1

        with pytest.raises(CommitmentAlreadyExists):
            mixer.deposit(commitment, pool.id, 100, "alice")

        # Step 3: Operator rebuilds the tree and publishes the root
        tree = MerkleTree(tree_height=pool.merkle_depth)
        for leaf in mixer.get_pool_commitments(pool.id):
            tree.insert(leaf)
        mixer.update_merkle_root(admin, pool.id, tree.root)

        # Step 4: Withdraw with a proof bound to the wrong recipient
        nullifier = CommitmentScheme.compute_nullifier(1, 2)
        proof = make_withdrawal_proof(tree.root, nullifier, BOB_RECIPIENT, 100)
        with pytest.raises(InvalidProof):
            mixer.withdraw(nullifier, ALICE_RECIPIENT, 100, proof)
        assert not mixer.is_nullifier_used(nullifier)

        # Step 5: Withdraw with the matching statement
        receipt = mixer.withdraw(nullifier, BOB_RECIPIENT, 100, proof)
        assert receipt.pool_id == pool.id
        assert receipt.merkle_root == tree.root
        assert ledger.balance_of(BOB_RECIPIENT) == 100
        assert mixer.get_pool_info(pool.id)["total_amount"] == 0

        # Step 6: Replay is rejected
        with pytest.raises(NullifierAlreadyUsed):
            mixer.withdraw(nullifier, BOB_RECIPIENT, 100, proof)

    def test_note_based_flow(self, mixer, admin, ledger, make_withdrawal_proof):
        """A depositor keeps only the note string and withdraws from it later."""
        pool = mixer.create_pool(admin, 0, 60, 8)
        note = Note.generate(amount=250)
        saved = note.to_string()
        mixer.deposit(note.commitment, pool.id, note.amount, "alice")

        tree = MerkleTree(tree_height=pool.merkle_depth)
        tree.insert(note.commitment)
        mixer.update_merkle_root(admin, pool.id, tree.root)

        restored = Note.parse(saved)
        leaf_index = mixer.get_pool_commitments(pool.id).index(restored.commitment)
        assert tree.verify_path(restored.commitment, tree.get_path(leaf_index), leaf_index)

        proof = make_withdrawal_proof(tree.root, restored.nullifier, BOB_RECIPIENT, restored.amount)
        mixer.withdraw(restored.nullifier, BOB_RECIPIENT, restored.amount, proof)
        assert ledger.balance_of(BOB_RECIPIENT) == 250

    def test_withdraw_against_recent_root(self, mixer, admin, make_withdrawal_proof):
        """A proof built on an older root stays valid while the root is recent."""
        pool = mixer.create_pool(admin, 0, 60, 8)
        tree = MerkleTree(tree_height=pool.merkle_depth)

        first = Note(secret=11, amount=40, nullifier_seed=12)
        mixer.deposit(first.commitment, pool.id, first.amount, "alice")
        tree.insert(first.commitment)
        mixer.update_merkle_root(admin, pool.id, tree.root)
        old_root = tree.root

        second = Note(secret=21, amount=60, nullifier_seed=22)
        mixer.deposit(second.commitment, pool.id, second.amount, "alice")
        tree.insert(second.commitment)
        mixer.update_merkle_root(admin, pool.id, tree.root)

        assert mixer.is_known_root(old_root, pool.id)
        proof = make_withdrawal_proof(old_root, first.nullifier, BOB_RECIPIENT, 40)
        receipt = mixer.withdraw(first.nullifier, BOB_RECIPIENT, 40, proof)
        assert receipt.merkle_root == old_root

    def test_pools_are_isolated(self, mixer, admin, make_withdrawal_proof):
        """A root published by one pool cannot drain another."""
        small = mixer.create_pool(admin, 0, 60, 8)
        large = mixer.create_pool(admin, 0, 60, 8)

        note = Note(secret=5, amount=10, nullifier_seed=6)
        mixer.deposit(note.commitment, small.id, 10, "alice")
        mixer.deposit(CommitmentScheme.compute_commitment(7, 1000, 8), large.id, 1000, "alice")

        tree = MerkleTree(tree_height=8)
        tree.insert(note.commitment)
        mixer.update_merkle_root(admin, small.id, tree.root)

        proof = make_withdrawal_proof(tree.root, note.nullifier, BOB_RECIPIENT, 10)
        receipt = mixer.withdraw(note.nullifier, BOB_RECIPIENT, 10, proof)
        assert receipt.pool_id == small.id
        assert mixer.get_pool_info(large.id)["total_amount"] == 1000

    def test_batch_with_replay(self, mixer, funded_pool, make_withdrawal_proof):
        """The second spend of a nullifier in one batch fails on its own."""
        _, tree, _, nullifier = funded_pool
        proof = make_withdrawal_proof(tree.root, nullifier, BOB_RECIPIENT, 50)
        request = WithdrawalRequest(nullifier, BOB_RECIPIENT, 50, proof)

        results = mixer.batch_withdraw([request, request])
        assert results[0].success
        assert results[1].error_code == "nullifier_already_used"


class TestPersistentLedgerWorkflow:
    """End-to-end flow with balances kept in SQLite."""

    @pytest.fixture
    def db(self, temp_db):
        manager = DatabaseManager(f"sqlite:///{temp_db}")
        manager.create_tables()
        yield manager
        manager.engine.dispose()

    def test_deposit_and_withdraw_settle_in_database(
        self, db, dev_setup, admin, settings, make_withdrawal_proof
    ):
        ledger = SqlLedger(db)
        ledger.fund("carol", 1000)
        mixer = MixingLedger(dev_setup.key, ledger, admin, settings)

        pool = mixer.create_pool(admin, 3600, 86400, 20)
        note = Note(secret=31, amount=300, nullifier_seed=32)
        mixer.deposit(note.commitment, pool.id, note.amount, "carol")
        assert ledger.balance_of("carol") == 700

        tree = MerkleTree(tree_height=pool.merkle_depth)
        tree.insert(note.commitment)
        mixer.update_merkle_root(admin, pool.id, tree.root)

        proof = make_withdrawal_proof(tree.root, note.nullifier, BOB_RECIPIENT, 300)
        mixer.withdraw(note.nullifier, BOB_RECIPIENT, 300, proof)
        assert SqlLedger(db).balance_of(BOB_RECIPIENT) == 300

        session = db.get_session()
        try:
            assert db.get_transfer_count(session, TransferType.DEBIT) == 1
            # fund + withdrawal
            assert db.get_transfer_count(session, TransferType.CREDIT) == 2
        finally:
            session.close()
