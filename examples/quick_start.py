#!/usr/bin/env python3
"""
Quick start guide for the ZK-Mixer system.

Run this to see a complete deposit and withdrawal with an in-memory ledger.
Proofs come from a development setup, so nothing here is fit for real funds.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from zkmixer.config import Settings, configure_logging
from zkmixer.core.commitment import Note, withdrawal_public_inputs
from zkmixer.core.ledger import InMemoryLedger
from zkmixer.core.merkle_tree import MerkleTree
from zkmixer.core.mixer import WITHDRAWAL_PUBLIC_INPUTS, MixingLedger
from zkmixer.crypto.trapdoor import DevelopmentSetup
from zkmixer.exceptions import InvalidProof, NullifierAlreadyUsed
from zkmixer.security.auth import AdminCapability
from zkmixer.utils.encoding import bytes_to_hex

RECIPIENT = "0x00000000000000000000000000000000000000b0"


def main():
    """Run a simple example of the ZK-Mixer system."""
    settings = Settings(log_level="WARNING", _env_file=None)
    configure_logging(settings)

    print("=" * 70)
    print("ZK-MIXER QUICK START EXAMPLE")
    print("=" * 70)
    print()

    # Step 1: Initialize the mixer
    print("Step 1: Initialize the ZK-Mixer")
    print("-" * 70)
    setup = DevelopmentSetup(WITHDRAWAL_PUBLIC_INPUTS)
    ledger = InMemoryLedger()
    ledger.fund("alice", 1000)
    admin = AdminCapability.issue()
    mixer = MixingLedger(setup.key, ledger, admin, settings)
    pool = mixer.create_pool(admin, min_delay=3600, max_delay=86400, merkle_depth=8)
    print(f"✓ Pool {pool.id} created with an 8-level Merkle tree (256 deposits)")
    print()

    # Step 2: Alice deposits
    print("Step 2: Alice deposits 1000 (private)")
    print("-" * 70)
    note = Note.generate(amount=1000)
    deposit = mixer.deposit(note.commitment, pool.id, note.amount, "alice")
    print("✓ Deposit recorded")
    print(f"  Commitment: {bytes_to_hex(deposit.commitment)[:34]}...")
    print(f"  Leaf Index: {deposit.leaf_index}")
    print(f"  Note (keep secret!): {note.to_string()[:40]}...")
    print()

    # Step 3: Operator publishes the Merkle root
    print("Step 3: Operator publishes the pool's Merkle root")
    print("-" * 70)
    tree = MerkleTree(tree_height=pool.merkle_depth)
    for commitment in mixer.get_pool_commitments(pool.id):
        tree.insert(commitment)
    mixer.update_merkle_root(admin, pool.id, tree.root)
    print(f"✓ Root: {bytes_to_hex(tree.root)[:34]}...")
    print()

    # Step 4: Alice withdraws to a fresh address
    print("Step 4: Alice withdraws 1000 to a fresh address")
    print("-" * 70)
    path = tree.get_path(deposit.leaf_index)
    assert tree.verify_path(note.commitment, path, deposit.leaf_index)
    proof = setup.prove(withdrawal_public_inputs(tree.root, note.nullifier, RECIPIENT, note.amount))
    receipt = mixer.withdraw(note.nullifier, RECIPIENT, note.amount, proof)
    print("✓ Withdrawal successful!")
    print(f"  Transaction: {receipt.transaction_hash}")
    print(f"  Recipient balance: {ledger.balance_of(RECIPIENT)}")
    print()

    # Step 5: Replays and redirected proofs are rejected
    print("Step 5: Replay and front-running attempts")
    print("-" * 70)
    try:
        mixer.withdraw(note.nullifier, RECIPIENT, note.amount, proof)
    except NullifierAlreadyUsed:
        print("✓ Replay rejected: nullifier already used")
    try:
        mixer.withdraw(note.nullifier, "0x" + "ee" * 20, note.amount, proof)
    except (NullifierAlreadyUsed, InvalidProof) as e:
        print(f"✓ Redirected proof rejected: {e.code}")
    print()

    stats = mixer.get_statistics()
    print("Statistics:")
    for key, value in stats.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
