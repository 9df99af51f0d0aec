"""Tests for REST API endpoints."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from zkpickup.api.routes import app, get_system, status_for
from zkpickup.exceptions import (
    InsufficientFundsError,
    NotOwnerError,
    PackageExpiredError,
    PackageNotFoundError,
    ProofRejectedError,
    WrongStoreError,
)
from zkpickup.security import create_access_token, verify_access_token
from zkpickup.utils.encoding import bytes_to_hex
from zkpickup.utils.hash import package_id_from_tracking_code

from tests.conftest import DAY, OTHER_STORE, OWNER, SELLER, STORE, STRANGER

P1 = package_id_from_tracking_code("PKG-1")
P1_HEX = bytes_to_hex(P1)


def auth(address):
    token, _ = create_access_token(address)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(system):
    """Test client bound to a fresh in-memory system."""
    app.dependency_overrides[get_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def ready_client(client):
    assert client.post("/sellers", headers=auth(SELLER)).status_code == 201
    response = client.post(
        "/stores",
        json={"address": STORE, "name": "Corner Shop", "location": "12 Main St", "commission_rate": 200},
        headers=auth(OWNER),
    )
    assert response.status_code == 200
    return client


def register_p1(client, buyer, **overrides):
    body = {
        "tracking_code": "PKG-1",
        "buyer_commitment": str(buyer.commitment),
        "store": STORE,
        "item_price": 100,
        "shipping_fee": 10,
        "seller_pays_shipping": True,
        "pickup_days": 7,
    }
    body.update(overrides)
    return client.post("/packages", json=body, headers=auth(SELLER))


class TestAuth:
    def test_token_round_trip(self):
        token, _ = create_access_token(SELLER.upper().replace("0X", "0x"))
        assert verify_access_token(token)["sub"] == SELLER

    def test_expired_token(self):
        token, _ = create_access_token(SELLER, expires_delta=timedelta(seconds=-10))
        assert verify_access_token(token) is None

    def test_garbage_token(self):
        assert verify_access_token("not-a-token") is None

    def test_missing_header(self, client):
        assert client.post("/sellers").status_code == 401

    def test_bad_scheme(self, client):
        assert client.post("/sellers", headers={"Authorization": "Basic abc"}).status_code == 401


class TestStatusMapping:
    @pytest.mark.parametrize(
        "error, status",
        [
            (PackageNotFoundError(), 404),
            (InsufficientFundsError(), 402),
            (NotOwnerError(), 403),
            (WrongStoreError(), 403),
            (PackageExpiredError(), 409),
            (ProofRejectedError(), 422),
        ],
    )
    def test_status_for(self, error, status):
        assert status_for(error) == status


class TestSystemEndpoints:
    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["open_packages"] == 0

    def test_platform_fee(self, client):
        assert client.get("/platform-fee").json() == {"rate": 100}

        response = client.put("/platform-fee", json={"rate": 300}, headers=auth(OWNER))
        assert response.status_code == 200
        assert client.get("/platform-fee").json() == {"rate": 300}

    def test_platform_fee_not_owner(self, client):
        response = client.put("/platform-fee", json={"rate": 300}, headers=auth(STRANGER))
        assert response.status_code == 403
        assert response.json()["code"] == "NotOwner"

    def test_platform_fee_over_cap(self, client):
        response = client.put("/platform-fee", json={"rate": 501}, headers=auth(OWNER))
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidFeeRate"


class TestRoleEndpoints:
    def test_register_seller_twice(self, ready_client):
        response = ready_client.post("/sellers", headers=auth(SELLER))
        assert response.status_code == 409
        assert response.json()["code"] == "SellerAlreadyRegistered"

    def test_get_seller(self, ready_client):
        data = ready_client.get(f"/sellers/{SELLER}").json()
        assert data["is_registered"] is True

    def test_get_store(self, ready_client):
        data = ready_client.get(f"/stores/{STORE}").json()
        assert data["is_authorized"] is True
        assert data["commission_rate"] == 200

    def test_invalid_address(self, client):
        response = client.get("/stores/not-an-address")
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidAddress"

    def test_deauthorize_store(self, ready_client):
        response = ready_client.delete(f"/stores/{STORE}", headers=auth(OWNER))
        assert response.status_code == 200
        assert response.json()["is_authorized"] is False

    def test_authorize_store_not_owner(self, client):
        response = client.post(
            "/stores",
            json={"address": STORE, "name": "x", "location": "y", "commission_rate": 100},
            headers=auth(SELLER),
        )
        assert response.status_code == 403


class TestPackageEndpoints:
    def test_register_and_get(self, ready_client, buyer):
        response = register_p1(ready_client, buyer)
        assert response.status_code == 201
        data = response.json()
        assert data["package_id"] == P1_HEX
        assert data["buyer_commitment"] == str(buyer.commitment)
        assert data["escrow_amount"] == 110

        assert ready_client.get(f"/packages/{P1_HEX}").json()["status"] == "registered"
        assert ready_client.get(f"/packages/{P1_HEX}/can-pickup").json()["can_pickup"] is True

    def test_register_requires_id(self, ready_client, buyer):
        response = register_p1(ready_client, buyer, tracking_code=None)
        assert response.status_code == 400

    def test_register_invalid_window(self, ready_client, buyer):
        response = register_p1(ready_client, buyer, pickup_days=31)
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidWindow"

    def test_register_insufficient_funds(self, ready_client, buyer):
        response = register_p1(ready_client, buyer, funds=50)
        assert response.status_code == 402

    def test_register_bad_commitment(self, ready_client, buyer):
        response = register_p1(ready_client, buyer, buyer_commitment="nope")
        assert response.status_code == 400

    def test_unknown_package(self, client):
        response = client.get(f"/packages/{P1_HEX}")
        assert response.status_code == 404
        assert response.json()["code"] == "PackageNotFound"

    def test_pickup(self, ready_client, proof_system, buyer, clock):
        register_p1(ready_client, buyer)
        proof = proof_system.prove(buyer, 30, P1, STORE, buyer.commitment, 0, clock())

        response = ready_client.post(
            f"/packages/{P1_HEX}/pickup",
            json={"proof": bytes_to_hex(proof.proof), "nullifier": str(proof.nullifier)},
            headers=auth(STORE),
        )

        assert response.status_code == 200
        data = response.json()
        assert (data["seller_amount"], data["store_commission"], data["platform_fee"]) == (107, 2, 1)

        nullifier = ready_client.get(f"/nullifiers/{proof.nullifier}").json()
        assert nullifier["used"] is True

    def test_pickup_bad_proof(self, ready_client, buyer, proof_system, clock):
        register_p1(ready_client, buyer)
        proof = proof_system.prove(buyer, 30, P1, STORE, buyer.commitment, 0, clock())

        response = ready_client.post(
            f"/packages/{P1_HEX}/pickup",
            json={"proof": "0x" + "00" * 32, "nullifier": str(proof.nullifier)},
            headers=auth(STORE),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "ProofRejected"
        assert ready_client.get(f"/packages/{P1_HEX}").json()["status"] == "registered"

    def test_pickup_wrong_store(self, ready_client, buyer, proof_system, clock):
        register_p1(ready_client, buyer)
        proof = proof_system.prove(buyer, 30, P1, STORE, buyer.commitment, 0, clock())

        response = ready_client.post(
            f"/packages/{P1_HEX}/pickup",
            json={"proof": bytes_to_hex(proof.proof), "nullifier": str(proof.nullifier)},
            headers=auth(OTHER_STORE),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "WrongStore"

    def test_reclaim(self, ready_client, buyer, clock):
        register_p1(ready_client, buyer, pickup_days=1)

        assert ready_client.post(f"/packages/{P1_HEX}/reclaim", headers=auth(SELLER)).status_code == 409

        clock.advance(DAY + 1)
        response = ready_client.post(f"/packages/{P1_HEX}/reclaim", headers=auth(SELLER))
        assert response.status_code == 200
        assert response.json()["status"] == "reclaimed"
        assert ready_client.get(f"/balances/{SELLER}").json()["balance"] == 110

    def test_nullifier_lookup(self, client):
        assert client.get("/nullifiers/12345").json() == {"nullifier": "12345", "used": False}
        assert client.get("/nullifiers/xyz").status_code == 400

    def test_events(self, ready_client, buyer):
        register_p1(ready_client, buyer)
        names = [e["name"] for e in ready_client.get("/events").json()["events"]]
        assert names == ["SellerRegistered", "StoreAuthorized", "PackageRegistered"]
