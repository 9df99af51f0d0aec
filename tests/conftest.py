"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from zkpickup.core.commitment import BuyerIdentity, Commitment  # noqa: E402
from zkpickup.core.system import AnonymousPickupSystem  # noqa: E402
from zkpickup.crypto.dev_proof import DevelopmentProofSystem  # noqa: E402
from zkpickup.storage import DatabaseManager  # noqa: E402
from zkpickup.utils.hash import package_id_from_tracking_code  # noqa: E402

OWNER = "0x" + "0" * 39 + "1"
TREASURY = "0x" + "f" * 40
SELLER = "0x" + "a" * 40
STORE = "0x" + "b" * 40
OTHER_STORE = "0x" + "c" * 40
STRANGER = "0x" + "d" * 40

START_TIME = 1_700_000_000
DAY = 86_400
DEV_KEY = bytes(range(32))


class FakeClock:
    """Settable clock returning unix seconds."""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock(START_TIME)


@pytest.fixture
def proof_system():
    """Development prover/verifier with a fixed key."""
    return DevelopmentProofSystem(DEV_KEY)


@pytest.fixture
def db():
    """Fresh in-memory database."""
    return DatabaseManager("sqlite://")


@pytest.fixture
def system(db, proof_system, clock):
    """Pickup system with no roles configured."""
    return AnonymousPickupSystem(db, proof_system, owner=OWNER, treasury=TREASURY, clock=clock)


@pytest.fixture
def ready_system(system):
    """Pickup system with SELLER registered and STORE authorized at 200 bps."""
    system.register_seller(SELLER)
    system.authorize_store(OWNER, STORE, "Corner Shop", "12 Main St", 200)
    return system


@pytest.fixture
def buyer():
    """Buyer identity with a fixed secret."""
    return BuyerIdentity(
        secret=123456789,
        name_hash=Commitment.hash_name("Alice Example"),
        phone_last_three=123,
    )


@pytest.fixture
def register(ready_system, buyer):
    """Register a package for ``buyer`` at STORE; keyword arguments override defaults."""

    def _register(tracking_code: str = "PKG-1", **overrides):
        params = dict(
            buyer_commitment=buyer.commitment,
            store=STORE,
            item_price=100,
            shipping_fee=10,
            min_age_required=0,
            seller_pays_shipping=True,
            pickup_days=7,
        )
        params.update(overrides)
        package_id = package_id_from_tracking_code(tracking_code)
        ready_system.register_package(SELLER, package_id, **params)
        return package_id

    return _register


@pytest.fixture
def prove(ready_system, proof_system, buyer, clock):
    """Produce a proof for a stored package at the current clock time."""

    def _prove(package_id: bytes, age: int = 30, store: str = STORE, identity: BuyerIdentity = None):
        package = ready_system.get_package(package_id)
        return proof_system.prove(
            identity or buyer,
            age,
            package_id,
            store,
            package.buyer_commitment,
            package.min_age_required,
            clock(),
        )

    return _prove
