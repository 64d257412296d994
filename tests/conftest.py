"""Pytest configuration and fixtures."""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from zkmixer.config import Settings
from zkmixer.core.commitment import CommitmentScheme, withdrawal_public_inputs
from zkmixer.core.ledger import InMemoryLedger
from zkmixer.core.merkle_tree import MerkleTree
from zkmixer.core.mixer import MixingLedger
from zkmixer.crypto.trapdoor import DevelopmentSetup
from zkmixer.security.auth import AdminCapability


@pytest.fixture
def temp_db(tmp_path):
    """Fixture providing a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture(scope="session")
def test_data():
    """Fixture providing test data."""
    return {
        "depositor": "alice",
        "recipient": "0x00000000000000000000000000000000000000b0",
        "sample_amount": 100,
        "sample_tree_height": 8,
    }


@pytest.fixture(scope="session")
def dev_setup():
    """Reproducible development setup for four-input withdrawal proofs."""
    return DevelopmentSetup(num_public_inputs=4, seed=1234)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'ledger.db'}",
        min_deposit=1,
        max_deposit=10**6,
        root_history_size=3,
        jwt_secret="test-secret-key-for-admin-tokens",
        _env_file=None,
    )


@pytest.fixture
def admin():
    return AdminCapability.issue()


@pytest.fixture
def ledger(test_data):
    ledger = InMemoryLedger()
    ledger.fund(test_data["depositor"], 10**6)
    return ledger


@pytest.fixture
def mixer(dev_setup, ledger, admin, settings):
    """Mixer over an in-memory ledger and the development key."""
    return MixingLedger(dev_setup.key, ledger, admin, settings)


@pytest.fixture
def funded_pool(mixer, admin, test_data):
    """
    Pool with one deposit of H(1, 100, 2) and its root published.

    Returns (pool, tree, commitment, nullifier).
    """
    pool = mixer.create_pool(admin, 3600, 86400, 20)
    commitment = CommitmentScheme.compute_commitment(1, 100, 2)
    nullifier = CommitmentScheme.compute_nullifier(1, 2)
    mixer.deposit(commitment, pool.id, 100, test_data["depositor"])

    tree = MerkleTree(tree_height=pool.merkle_depth)
    tree.insert(commitment)
    mixer.update_merkle_root(admin, pool.id, tree.root)
    return pool, tree, commitment, nullifier


@pytest.fixture
def make_withdrawal_proof(dev_setup):
    """Build a valid withdrawal proof for (root, nullifier, recipient, amount)."""

    def _make(root, nullifier, recipient, amount):
        return dev_setup.prove(withdrawal_public_inputs(root, nullifier, recipient, amount))

    return _make
