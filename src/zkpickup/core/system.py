"""Anonymous pickup system: the single entry point over all components.

Architecture:
    1. Role registry: sellers, stores, platform fee rate
    2. Package registry: registration, expiry, reclaim, escrow
    3. Proof verification gateway: public signals from stored state
    4. Nullifier ledger: one pickup per nullifier
    5. Settlement engine: seller / store / platform split

Every mutating call runs under one process-wide lock and one database
transaction. The transaction time is read once from the clock at the start
of the call. If any step raises, the transaction rolls back and the store is
left exactly as it was.

The lock only orders calls within one process. Across workers sharing a
database, closing a package is a conditional UPDATE on ``status`` and
balances are re-read under ``FOR UPDATE``, so a racing second pickup fails
with AlreadyPickedUpError instead of paying out again.

Pickup Flow:
    1. Package exists, is Registered and not expired
    2. Nullifier is well formed and unused
    3. Caller is the bound store and is still authorized
    4. Shipping payment matches who pays shipping
    5. Proof verifies against [package_id, commitment, store, now, min_age, nullifier]
    6. Package PickedUp (conditional on status), nullifier consumed,
       counters updated, funds split
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple, Union

from zkpickup.config import Settings, get_settings
from zkpickup.core import events
from zkpickup.core.events import EventRecord
from zkpickup.core.nullifier import NullifierLedger, validate_nullifier
from zkpickup.core.registry import PackageInfo, PackageRegistry, validate_amount
from zkpickup.core.roles import BuyerStatsInfo, RoleRegistry, SellerInfo, StoreInfo
from zkpickup.core.settlement import PaymentSplit, SettlementEngine
from zkpickup.core.verifier import ProofVerificationGateway, ProofVerifier
from zkpickup.exceptions import (
    InsufficientShippingPaymentError,
    UnexpectedPaymentError,
    WrongStoreError,
)
from zkpickup.storage import DatabaseManager, PickupRepository
from zkpickup.utils.encoding import bytes_to_hex, normalize_address, parse_package_id

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
PackageIdLike = Union[bytes, str]


def system_clock() -> int:
    return int(time.time())


@dataclass(frozen=True)
class PickupReceipt:
    """Outcome of a successful pickup."""

    package_id: bytes
    store: str
    picked_up_at: int
    split: PaymentSplit

    def to_dict(self) -> dict:
        return {
            "package_id": bytes_to_hex(self.package_id),
            "store": self.store,
            "picked_up_at": self.picked_up_at,
            **self.split.to_dict(),
        }


class AnonymousPickupSystem:
    """
    Coordinates roles, packages, proofs, nullifiers and settlement.

    Attributes:
        db: Database manager holding the authoritative state
        roles: Seller/store/fee administration
        registry: Package records
        ledger: Consumed nullifiers
        gateway: Proof verification
        settlement: Fee split and payouts
    """

    def __init__(
        self,
        db: DatabaseManager,
        verifier: ProofVerifier,
        owner: str,
        treasury: Optional[str] = None,
        platform_fee_rate: int = 100,
        max_pickup_days: int = 30,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.db.create_tables()
        self.clock = clock or system_clock
        self._lock = threading.RLock()

        self.roles = RoleRegistry(owner, platform_fee_rate)
        self.registry = PackageRegistry(self.roles, max_pickup_days)
        self.ledger = NullifierLedger()
        self.gateway = ProofVerificationGateway(verifier)
        self.settlement = SettlementEngine(normalize_address(treasury) if treasury else self.roles.owner)

        logger.info(
            f"Pickup system ready: owner={self.roles.owner} treasury={self.settlement.treasury} "
            f"fee={platform_fee_rate} bps window={max_pickup_days} days"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        verifier: Optional[ProofVerifier] = None,
        clock: Optional[Clock] = None,
    ) -> "AnonymousPickupSystem":
        """Build a system from environment settings."""
        from zkpickup.crypto import get_proof_verifier

        settings = settings or get_settings()
        return cls(
            db=DatabaseManager(settings.database_url),
            verifier=verifier or get_proof_verifier(settings),
            owner=settings.owner_address,
            treasury=settings.treasury,
            platform_fee_rate=settings.platform_fee_rate_bps,
            max_pickup_days=settings.max_pickup_days,
            clock=clock,
        )

    @property
    def owner(self) -> str:
        return self.roles.owner

    @property
    def treasury(self) -> str:
        return self.settlement.treasury

    @contextmanager
    def _write(self) -> Iterator[Tuple[PickupRepository, int]]:
        with self._lock:
            now = self.clock()
            with self.db.transaction() as session:
                yield PickupRepository(session), now

    @contextmanager
    def _read(self) -> Iterator[Tuple[PickupRepository, int]]:
        session = self.db.get_session()
        try:
            yield PickupRepository(session), self.clock()
        finally:
            session.close()

    # Role administration
    def register_seller(self, caller: str) -> SellerInfo:
        with self._write() as (repo, now):
            self.roles.register_seller(repo, caller, now)
            return self.roles.seller_info(repo, caller)

    def authorize_store(
        self, caller: str, address: str, name: str, location: str, commission_rate: int
    ) -> StoreInfo:
        with self._write() as (repo, now):
            self.roles.authorize_store(repo, caller, address, name, location, commission_rate, now)
            return self.roles.store_info(repo, address)

    def deauthorize_store(self, caller: str, address: str) -> StoreInfo:
        with self._write() as (repo, now):
            self.roles.deauthorize_store(repo, caller, address, now)
            return self.roles.store_info(repo, address)

    def set_platform_fee_rate(self, caller: str, rate: int) -> int:
        with self._write() as (repo, now):
            return self.roles.set_platform_fee_rate(repo, caller, rate, now)

    # Packages
    def register_package(
        self,
        caller: str,
        package_id: PackageIdLike,
        buyer_commitment: int,
        store: str,
        item_price: int,
        shipping_fee: int,
        min_age_required: int = 0,
        seller_pays_shipping: bool = True,
        pickup_days: int = 7,
        funds: Optional[int] = None,
    ) -> PackageInfo:
        """
        Register a package. ``funds`` defaults to the amount the seller must
        attach: price plus shipping when the seller pays, else the price.
        """
        package_id = parse_package_id(package_id)
        if funds is None:
            funds = item_price + shipping_fee if seller_pays_shipping else item_price

        with self._write() as (repo, now):
            package = self.registry.register_package(
                repo,
                caller,
                package_id,
                buyer_commitment,
                store,
                item_price,
                shipping_fee,
                min_age_required,
                seller_pays_shipping,
                pickup_days,
                funds,
                now,
            )
            return PackageInfo.from_package(package, now)

    def execute_pickup(
        self,
        caller: str,
        package_id: PackageIdLike,
        proof: bytes,
        nullifier: int,
        shipping_payment: int = 0,
        buyer_identity: Optional[str] = None,
    ) -> PickupReceipt:
        """
        Release a package to the bearer of a valid proof.

        Args:
            caller: Store submitting the pickup
            package_id: Package being collected
            proof: Proof bytes produced by the buyer
            nullifier: Single-use nullifier bound into the proof
            shipping_payment: Shipping collected from the buyer at the counter
            buyer_identity: Optional store-side identifier for buyer statistics

        Returns:
            PickupReceipt: Timing and the exact payout split

        Raises:
            PackageNotFoundError, AlreadyPickedUpError, AlreadyReclaimedError,
            PackageExpiredError, InvalidNullifierError, NullifierAlreadyUsedError,
            WrongStoreError, UnauthorizedStoreError, UnexpectedPaymentError,
            InsufficientShippingPaymentError, ProofRejectedError
        """
        caller = normalize_address(caller)
        package_id = parse_package_id(package_id)
        validate_amount(shipping_payment, "Shipping payment")

        with self._write() as (repo, now):
            package = self.registry.load_for_pickup(repo, package_id, now)

            validate_nullifier(nullifier)
            self.ledger.require_unused(repo, nullifier)

            if caller != package.store:
                raise WrongStoreError("Package is bound to a different store")
            store = self.roles.require_authorized_store(repo, package.store)

            if package.seller_pays_shipping:
                if shipping_payment:
                    raise UnexpectedPaymentError("Shipping is prepaid by the seller")
            elif shipping_payment < package.shipping_fee:
                raise InsufficientShippingPaymentError(
                    f"Shipping payment {shipping_payment} below fee {package.shipping_fee}"
                )

            self.gateway.verify_pickup(package, proof, nullifier, now)

            # State changes start here; the status transition is the first write
            self.registry.mark_picked_up(repo, package, now)
            self.ledger.consume(repo, nullifier, package_id, package.store, now)

            seller = repo.get_seller(package.seller)
            if seller is not None:
                repo.increment(seller, "successful_deliveries")
            commission_rate = store.commission_rate
            repo.increment(store, "total_pickups")

            if buyer_identity:
                stats = repo.get_or_create_buyer_stats(buyer_identity)
                repo.increment(stats, "total_pickups")
                stats.last_pickup_time = now

            split = self.settlement.settle(
                repo,
                package_id,
                package.seller,
                package.store,
                package.escrow_amount + shipping_payment,
                self.roles.platform_fee_rate(repo),
                commission_rate,
                now,
            )

            repo.add_event(
                events.PACKAGE_PICKED_UP,
                now,
                {
                    "package_id": bytes_to_hex(package_id),
                    "store": package.store,
                    "nullifier": str(nullifier),
                    "shipping_payment": shipping_payment,
                    **split.to_dict(),
                },
                package_id=package_id,
                principal=package.store,
            )

        logger.info(f"Package picked up: {bytes_to_hex(package_id)[:10]}... at {caller}")
        return PickupReceipt(package_id=package_id, store=caller, picked_up_at=now, split=split)

    def reclaim_expired(self, caller: str, package_id: PackageIdLike) -> PackageInfo:
        package_id = parse_package_id(package_id)
        with self._write() as (repo, now):
            package = self.registry.reclaim_expired(repo, caller, package_id, now)
            return PackageInfo.from_package(package, now)

    # Queries
    def get_package(self, package_id: PackageIdLike) -> PackageInfo:
        package_id = parse_package_id(package_id)
        with self._read() as (repo, now):
            return self.registry.get_package(repo, package_id, now)

    def can_pickup(self, package_id: PackageIdLike) -> bool:
        package_id = parse_package_id(package_id)
        with self._read() as (repo, now):
            return self.registry.can_pickup(repo, package_id, now)

    def get_store_info(self, address: str) -> StoreInfo:
        with self._read() as (repo, _):
            return self.roles.store_info(repo, address)

    def get_seller_info(self, address: str) -> SellerInfo:
        with self._read() as (repo, _):
            return self.roles.seller_info(repo, address)

    def get_buyer_stats(self, identity: str) -> BuyerStatsInfo:
        with self._read() as (repo, _):
            return self.roles.buyer_stats(repo, identity)

    def is_nullifier_used(self, nullifier: int) -> bool:
        with self._read() as (repo, _):
            return self.ledger.is_consumed(repo, nullifier)

    def get_balance(self, address: str) -> int:
        address = normalize_address(address)
        with self._read() as (repo, _):
            return repo.get_balance(address)

    def get_escrow_total(self) -> int:
        with self._read() as (repo, _):
            return self.registry.escrow_total(repo)

    def get_platform_fee_rate(self) -> int:
        with self._read() as (repo, _):
            return self.roles.platform_fee_rate(repo)

    def get_events(
        self, package_id: Optional[PackageIdLike] = None, name: Optional[str] = None
    ) -> List[EventRecord]:
        if package_id is not None:
            package_id = parse_package_id(package_id)
        with self._read() as (repo, _):
            return [EventRecord.from_row(row) for row in repo.list_events(package_id=package_id, name=name)]

    def get_statistics(self) -> dict:
        """Aggregate counters for dashboards and the health endpoint."""
        with self._read() as (repo, _):
            return {
                "nullifiers_consumed": self.ledger.count(repo),
                "open_packages": self.registry.open_packages(repo),
                "escrow_total": self.registry.escrow_total(repo),
                "platform_fee_rate": self.roles.platform_fee_rate(repo),
            }
