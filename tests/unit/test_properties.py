"""Property-based tests using Hypothesis for protocol invariants."""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from zkpickup.config import MAX_COMMISSION_RATE, MAX_PLATFORM_FEE_RATE
from zkpickup.core.commitment import BuyerIdentity, Commitment
from zkpickup.core.settlement import compute_split
from zkpickup.core.system import AnonymousPickupSystem
from zkpickup.crypto.dev_proof import DevelopmentProofSystem
from zkpickup.exceptions import AlreadyPickedUpError, DuplicatePackageError, NullifierAlreadyUsedError
from zkpickup.storage import DatabaseManager
from zkpickup.utils.encoding import MAX_U256
from zkpickup.utils.hash import package_id_from_tracking_code

from tests.conftest import DEV_KEY, OWNER, SELLER, START_TIME, STORE, TREASURY, FakeClock

amounts = st.integers(min_value=0, max_value=MAX_U256 // 20_000)
platform_rates = st.integers(min_value=0, max_value=MAX_PLATFORM_FEE_RATE)
commission_rates = st.integers(min_value=0, max_value=MAX_COMMISSION_RATE)


def fresh_system(platform_rate=100):
    system = AnonymousPickupSystem(
        DatabaseManager("sqlite://"),
        DevelopmentProofSystem(DEV_KEY),
        owner=OWNER,
        treasury=TREASURY,
        platform_fee_rate=platform_rate,
        clock=FakeClock(START_TIME),
    )
    system.register_seller(SELLER)
    return system


class TestSettlementProperties:
    @given(amounts, platform_rates, commission_rates)
    @settings(max_examples=200)
    def test_conservation(self, total, platform_rate, commission_rate):
        """Property: seller + store + platform == total, with nothing negative."""
        split = compute_split(total, platform_rate, commission_rate)

        assert split.seller_amount + split.store_commission + split.platform_fee == total
        assert split.seller_amount >= 0
        assert split.store_commission >= 0
        assert split.platform_fee >= 0

    @given(amounts, platform_rates, commission_rates)
    @settings(max_examples=100)
    def test_fees_round_down(self, total, platform_rate, commission_rate):
        split = compute_split(total, platform_rate, commission_rate)

        assert split.platform_fee * 10_000 <= total * platform_rate
        assert split.store_commission * 10_000 <= total * commission_rate


class TestCommitmentProperties:
    @given(
        st.integers(min_value=1, max_value=2**250),
        st.integers(min_value=0, max_value=2**250),
        st.integers(min_value=0, max_value=999),
    )
    @settings(max_examples=50)
    def test_commitment_opens(self, secret, name_hash, phone):
        commitment = Commitment.compute_commitment(secret, name_hash, phone)
        assert Commitment.verify_commitment(secret, name_hash, phone, commitment)

    @given(st.integers(min_value=1, max_value=2**250), st.integers(min_value=0, max_value=1000))
    @settings(max_examples=50)
    def test_nonces_give_distinct_nullifiers(self, secret, nonce):
        package_id = package_id_from_tracking_code("PKG-1")
        assert Commitment.compute_nullifier(secret, package_id, nonce, STORE) != Commitment.compute_nullifier(
            secret, package_id, nonce + 1, STORE
        )


class TestProtocolProperties:
    @given(
        st.integers(min_value=0, max_value=10**12),
        st.integers(min_value=1, max_value=10**9),
        platform_rates,
        commission_rates,
    )
    @settings(max_examples=15, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_pickup_pays_out_escrow_exactly(self, price, shipping, platform_rate, commission_rate):
        """Property: a pickup distributes exactly the escrow, once."""
        system = fresh_system(platform_rate)
        system.authorize_store(OWNER, STORE, "Corner Shop", "12 Main St", commission_rate)
        buyer = BuyerIdentity(secret=99, name_hash=1, phone_last_three=123)
        package_id = package_id_from_tracking_code("PKG-1")

        system.register_package(SELLER, package_id, buyer.commitment, STORE, price, shipping)
        escrow = system.get_escrow_total()
        proof = system.gateway.verifier.prove(buyer, 30, package_id, STORE, buyer.commitment, 0, system.clock())
        system.execute_pickup(STORE, package_id, proof.proof, proof.nullifier)

        paid = system.get_balance(SELLER) + system.get_balance(STORE) + system.get_balance(TREASURY)
        assert paid == escrow == price + shipping
        assert system.get_escrow_total() == 0

        with pytest.raises(AlreadyPickedUpError):
            system.execute_pickup(STORE, package_id, proof.proof, proof.nullifier)
        assert system.get_balance(SELLER) + system.get_balance(STORE) + system.get_balance(TREASURY) == paid

    @given(st.text(min_size=1, max_size=20))
    @settings(max_examples=15, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_package_id_unique(self, tracking_code):
        """Property: a package id can be registered once."""
        system = fresh_system()
        system.authorize_store(OWNER, STORE, "Corner Shop", "12 Main St", 0)
        package_id = package_id_from_tracking_code(tracking_code)

        system.register_package(SELLER, package_id, 1, STORE, 100, 10)
        with pytest.raises(DuplicatePackageError):
            system.register_package(SELLER, package_id, 2, STORE, 100, 10)
        assert system.get_package(package_id).buyer_commitment == 1

    @given(st.lists(st.text(min_size=1, max_size=8), min_size=2, max_size=4, unique=True))
    @settings(max_examples=10, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_nullifier_single_use_across_packages(self, tracking_codes):
        """Property: a consumed nullifier fails on every other package."""
        system = fresh_system()
        system.authorize_store(OWNER, STORE, "Corner Shop", "12 Main St", 0)
        buyer = BuyerIdentity(secret=99, name_hash=1, phone_last_three=123)
        package_ids = [package_id_from_tracking_code(code) for code in tracking_codes]
        for package_id in package_ids:
            system.register_package(SELLER, package_id, buyer.commitment, STORE, 100, 10)

        proof = system.gateway.verifier.prove(buyer, 30, package_ids[0], STORE, buyer.commitment, 0, system.clock())
        system.execute_pickup(STORE, package_ids[0], proof.proof, proof.nullifier)

        for package_id in package_ids[1:]:
            with pytest.raises(NullifierAlreadyUsedError):
                system.execute_pickup(STORE, package_id, proof.proof, proof.nullifier)
            assert system.can_pickup(package_id)
