"""Tests for the fee split and payouts."""

import pytest

from zkpickup.core import events
from zkpickup.core.settlement import PaymentSplit, SettlementEngine, compute_split
from zkpickup.exceptions import InvalidAmountError, InvalidFeeRateError
from zkpickup.storage import PickupRepository
from zkpickup.utils.hash import package_id_from_tracking_code

from tests.conftest import SELLER, START_TIME, STORE, TREASURY


class TestComputeSplit:
    def test_reference_split(self):
        """110 at 100 bps platform and 200 bps commission."""
        split = compute_split(110, 100, 200)

        assert split == PaymentSplit(total=110, seller_amount=107, store_commission=2, platform_fee=1)
        assert split.seller_amount + split.store_commission + split.platform_fee == 110

    def test_zero_rates(self):
        assert compute_split(1000, 0, 0) == PaymentSplit(1000, 1000, 0, 0)

    def test_caps(self):
        split = compute_split(10_000, 500, 1000)
        assert (split.platform_fee, split.store_commission, split.seller_amount) == (500, 1000, 8500)

    def test_seller_gets_remainder(self):
        """Both fees round down; the seller absorbs the remainder."""
        split = compute_split(99, 100, 100)
        assert (split.platform_fee, split.store_commission, split.seller_amount) == (0, 0, 99)

    def test_zero_total(self):
        assert compute_split(0, 100, 200) == PaymentSplit(0, 0, 0, 0)

    def test_rates_over_cap(self):
        with pytest.raises(InvalidFeeRateError):
            compute_split(100, 501, 0)
        with pytest.raises(InvalidFeeRateError):
            compute_split(100, 0, 1001)

    def test_negative_total(self):
        with pytest.raises(InvalidAmountError):
            compute_split(-1, 100, 100)


class TestSettlementEngine:
    @pytest.fixture
    def repo(self, db):
        db.create_tables()
        session = db.get_session()
        yield PickupRepository(session)
        session.close()

    def test_settle_credits_all_parties(self, repo):
        engine = SettlementEngine(TREASURY)
        package_id = package_id_from_tracking_code("PKG-1")

        split = engine.settle(repo, package_id, SELLER, STORE, 110, 100, 200, START_TIME)

        assert repo.get_balance(SELLER) == split.seller_amount == 107
        assert repo.get_balance(STORE) == split.store_commission == 2
        assert repo.get_balance(TREASURY) == split.platform_fee == 1

        [event] = repo.list_events(name=events.PAYMENT_PROCESSED)
        assert event.package_id == package_id

    def test_zero_shares_not_credited(self, repo):
        engine = SettlementEngine(TREASURY)
        engine.settle(repo, package_id_from_tracking_code("PKG-1"), SELLER, STORE, 50, 100, 100, START_TIME)

        assert repo.get_balance(SELLER) == 50
        assert repo.get_balance(STORE) == 0
        assert repo.get_balance(TREASURY) == 0

    def test_balances_accumulate(self, repo):
        engine = SettlementEngine(TREASURY)
        engine.settle(repo, package_id_from_tracking_code("PKG-1"), SELLER, STORE, 110, 100, 200, START_TIME)
        engine.settle(repo, package_id_from_tracking_code("PKG-2"), SELLER, STORE, 110, 100, 200, START_TIME)

        assert repo.get_balance(SELLER) == 214
