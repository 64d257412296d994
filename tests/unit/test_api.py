"""Tests for REST API endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from zkmixer.api.routes import MixerService, app, build_service, set_service
from zkmixer.core.commitment import CommitmentScheme
from zkmixer.core.ledger import InMemoryLedger
from zkmixer.core.merkle_tree import MerkleTree
from zkmixer.exceptions import InvalidVerificationKey
from zkmixer.security.auth import create_admin_token
from zkmixer.storage import reset_db_manager
from zkmixer.utils.encoding import bytes_to_hex

RECIPIENT = "0x00000000000000000000000000000000000000b0"


@pytest.fixture
def service(mixer, admin, ledger, settings, dev_setup):
    """Mixer service over the in-memory ledger."""
    service = MixerService(
        mixer=mixer, admin=admin, ledger=ledger, settings=settings, dev_setup=dev_setup
    )
    set_service(service)
    yield service
    set_service(None)


@pytest.fixture
def client(service):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def admin_headers(settings):
    token, _ = create_admin_token("operator", settings=settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def pool_id(client, admin_headers):
    response = client.post(
        "/pools",
        json={"min_delay": 3600, "max_delay": 86400, "merkle_depth": 8},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()["pool_id"]


def _deposit(client, pool_id, secret=1, amount=100, seed=2):
    commitment = CommitmentScheme.compute_commitment(secret, amount, seed)
    response = client.post(
        "/deposit",
        json={
            "commitment": bytes_to_hex(commitment),
            "pool_id": pool_id,
            "amount": amount,
            "depositor": "alice",
        },
    )
    return commitment, response


class TestHealthEndpoints:
    """Test health and system endpoints."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    def test_root_endpoint(self, client):
        data = client.get("/").json()
        assert "endpoints" in data
        assert "version" in data

    def test_statistics_endpoint(self, client):
        response = client.get("/statistics")
        assert response.status_code == 200
        data = response.json()
        assert data["total_pools"] == 0
        assert data["paused"] is False


class TestPoolEndpoints:
    """Test pool administration endpoints."""

    def test_create_pool_requires_token(self, client):
        response = client.post("/pools", json={"min_delay": 1, "max_delay": 2, "merkle_depth": 8})
        assert response.status_code == 401

    def test_create_pool_rejects_bad_token(self, client):
        response = client.post(
            "/pools",
            json={"min_delay": 1, "max_delay": 2, "merkle_depth": 8},
            headers={"Authorization": "Bearer nonsense"},
        )
        assert response.status_code == 401

    def test_create_and_get_pool(self, client, pool_id):
        response = client.get(f"/pools/{pool_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["min_delay"] == 3600
        assert data["total_amount"] == 0

    def test_invalid_delay_range(self, client, admin_headers):
        response = client.post(
            "/pools",
            json={"min_delay": 10, "max_delay": 1, "merkle_depth": 8},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_delay_range"

    def test_invalid_depth_is_validation_error(self, client, admin_headers):
        response = client.post(
            "/pools",
            json={"min_delay": 1, "max_delay": 2, "merkle_depth": 40},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_unknown_pool(self, client):
        assert client.get("/pools/99").status_code == 404

    def test_update_root(self, client, admin_headers, pool_id):
        root = bytes_to_hex((42).to_bytes(32, "big"))
        response = client.put(
            f"/pools/{pool_id}/root", json={"merkle_root": root}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["merkle_root"] == root

    def test_update_root_requires_token(self, client, pool_id):
        response = client.put(f"/pools/{pool_id}/root", json={"merkle_root": "0x01"})
        assert response.status_code == 401

    def test_deactivate_pool(self, client, admin_headers, pool_id):
        response = client.put(
            f"/pools/{pool_id}/active", json={"active": False}, headers=admin_headers
        )
        assert response.json()["is_active"] is False
        _, deposit = _deposit(client, pool_id)
        assert deposit.status_code == 409
        assert deposit.json()["code"] == "pool_inactive"


class TestDepositEndpoint:
    """Test deposit endpoint."""

    def test_valid_deposit(self, client, pool_id):
        commitment, response = _deposit(client, pool_id)
        assert response.status_code == 200
        data = response.json()
        assert data["commitment"] == bytes_to_hex(commitment)
        assert data["leaf_index"] == 0

        info = client.get(f"/deposits/{bytes_to_hex(commitment)}")
        assert info.status_code == 200
        assert info.json()["amount"] == 100

        commitments = client.get(f"/pools/{pool_id}/commitments").json()["commitments"]
        assert commitments == [bytes_to_hex(commitment)]

    def test_duplicate_deposit(self, client, pool_id):
        _deposit(client, pool_id)
        _, response = _deposit(client, pool_id)
        assert response.status_code == 409
        assert response.json()["code"] == "commitment_already_exists"

    def test_zero_amount(self, client, pool_id):
        response = client.post(
            "/deposit",
            json={"commitment": "0x" + "01" * 32, "pool_id": pool_id, "amount": 0, "depositor": "alice"},
        )
        assert response.status_code == 400

    def test_bad_hex(self, client, pool_id):
        response = client.post(
            "/deposit",
            json={"commitment": "0xzz", "pool_id": pool_id, "amount": 1, "depositor": "alice"},
        )
        assert response.status_code == 400

    def test_insufficient_funds(self, client, pool_id):
        response = client.post(
            "/deposit",
            json={
                "commitment": bytes_to_hex(CommitmentScheme.compute_commitment(3, 5, 4)),
                "pool_id": pool_id,
                "amount": 5,
                "depositor": "nobody",
            },
        )
        assert response.status_code == 402

    def test_unknown_deposit(self, client):
        assert client.get("/deposits/0x" + "00" * 31 + "01").status_code == 404


class TestWithdrawalEndpoint:
    """Test withdrawal and verification endpoints."""

    @pytest.fixture
    def published(self, client, admin_headers, pool_id):
        commitment, _ = _deposit(client, pool_id)
        tree = MerkleTree(tree_height=8)
        tree.insert(commitment)
        client.put(
            f"/pools/{pool_id}/root",
            json={"merkle_root": bytes_to_hex(tree.root)},
            headers=admin_headers,
        )
        return tree.root, CommitmentScheme.compute_nullifier(1, 2)

    def _payload(self, proof, nullifier, recipient, amount):
        proof_json, public = proof.to_snarkjs()
        return {
            "nullifier": bytes_to_hex(nullifier),
            "recipient": recipient,
            "amount": amount,
            "proof": proof_json,
            "public_signals": public,
        }

    def test_withdraw_and_replay(self, client, ledger, published, make_withdrawal_proof):
        root, nullifier = published
        proof = make_withdrawal_proof(root, nullifier, RECIPIENT, 100)
        payload = self._payload(proof, nullifier, RECIPIENT, 100)

        response = client.post("/withdraw", json=payload)
        assert response.status_code == 200
        assert response.json()["amount"] == 100
        assert ledger.balance_of(RECIPIENT) == 100

        status = client.get(f"/nullifiers/{bytes_to_hex(nullifier)}").json()
        assert status["used"] is True

        replay = client.post("/withdraw", json=payload)
        assert replay.status_code == 409
        assert replay.json()["code"] == "nullifier_already_used"

    def test_mismatched_recipient(self, client, published, make_withdrawal_proof):
        root, nullifier = published
        proof = make_withdrawal_proof(root, nullifier, RECIPIENT, 100)
        response = client.post("/withdraw", json=self._payload(proof, nullifier, "mallory", 100))
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_proof"

    def test_malformed_proof(self, client, published, make_withdrawal_proof):
        root, nullifier = published
        payload = self._payload(
            make_withdrawal_proof(root, nullifier, RECIPIENT, 100), nullifier, RECIPIENT, 100
        )
        payload["proof"]["pi_a"] = ["1", "3", "1"]
        response = client.post("/withdraw", json=payload)
        assert response.status_code == 409

    def test_verify_endpoint(self, client, published, make_withdrawal_proof):
        root, nullifier = published
        proof = make_withdrawal_proof(root, nullifier, RECIPIENT, 100)
        proof_json, public = proof.to_snarkjs()

        response = client.post("/verify", json={"proof": proof_json, "public_signals": public})
        assert response.json() == {"valid": True}

        public[3] = "99"
        response = client.post("/verify", json={"proof": proof_json, "public_signals": public})
        assert response.json() == {"valid": False}


class TestPauseEndpoints:
    """Test pause and unpause."""

    def test_pause_blocks_deposits(self, client, admin_headers, pool_id):
        assert client.post("/admin/pause", headers=admin_headers).json()["paused"] is True
        _, response = _deposit(client, pool_id)
        assert response.status_code == 409
        assert response.json()["code"] == "mixer_paused"

        client.post("/admin/unpause", headers=admin_headers)
        _, response = _deposit(client, pool_id)
        assert response.status_code == 200

    def test_emergency_withdraw(self, client, admin_headers, ledger, pool_id):
        _deposit(client, pool_id)
        url = f"/pools/{pool_id}/emergency-withdraw"

        response = client.post(url, json={"recipient": RECIPIENT}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "mixer_not_paused"

        client.post("/admin/pause", headers=admin_headers)
        assert client.post(url, json={"recipient": RECIPIENT}).status_code == 401
        response = client.post(url, json={"recipient": RECIPIENT}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"pool_id": pool_id, "recipient": RECIPIENT, "amount": 100}
        assert ledger.balance_of(RECIPIENT) == 100
        assert client.get(f"/pools/{pool_id}").json()["total_amount"] == 0


class TestServiceWiring:
    """Test building the service from settings."""

    def test_build_service_requires_key_by_default(self, settings):
        assert not settings.allow_dev_setup
        with pytest.raises(InvalidVerificationKey):
            build_service(settings, ledger=InMemoryLedger())

    def test_build_service_with_dev_setup(self, settings):
        allowed = settings.model_copy(update={"allow_dev_setup": True})
        reset_db_manager()
        try:
            service = build_service(allowed, ledger=InMemoryLedger())
            assert service.dev_setup is not None
            assert service.mixer.verifier.key == service.dev_setup.key
        finally:
            reset_db_manager()

    def test_build_service_with_key_file(self, settings, dev_setup, tmp_path):
        path = tmp_path / "verification_key.json"
        path.write_text(json.dumps(dev_setup.key.to_snarkjs()))
        keyed = settings.model_copy(update={"verification_key_path": str(path)})
        reset_db_manager()
        try:
            service = build_service(keyed)
            assert service.dev_setup is None
            assert service.mixer.verifier.key == dev_setup.key
        finally:
            reset_db_manager()
