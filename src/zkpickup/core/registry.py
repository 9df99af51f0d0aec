"""Package registry: registration, lifecycle and escrow accounting.

Lifecycle:

    Registered --pickup--> PickedUp
    Registered --expiry + seller reclaim--> Reclaimed

``Expired`` is never stored; a Registered package is expired once
``now > expires_at``. PickedUp and Reclaimed are terminal.

Funding rules at registration:
    - seller pays shipping: funds >= item_price + shipping_fee, the whole
      amount is escrowed and ``funds - item_price`` becomes the shipping fee
    - buyer pays shipping: funds >= item_price, only the item price is
      escrowed and any excess goes back to the seller's balance; the
      declared shipping fee is collected from the buyer at pickup
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from zkpickup.config import MAX_AGE_REQUIREMENT, SECONDS_PER_DAY
from zkpickup.core import events
from zkpickup.core.roles import RoleRegistry
from zkpickup.exceptions import (
    AlreadyPickedUpError,
    AlreadyReclaimedError,
    DuplicatePackageError,
    InsufficientFundsError,
    InvalidAgeRequirementError,
    InvalidAmountError,
    InvalidCommitmentError,
    InvalidWindowError,
    NotPackageSellerError,
    PackageExpiredError,
    PackageNotExpiredError,
    PackageNotFoundError,
)
from zkpickup.storage import Package, PackageStatus, PickupRepository
from zkpickup.utils.encoding import MAX_U256, bytes_to_hex, normalize_address

logger = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_amount(value: int, label: str) -> int:
    if not _is_int(value) or not 0 <= value <= MAX_U256:
        raise InvalidAmountError(f"{label} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class PackageInfo:
    """Read-only projection of a package record."""

    package_id: str
    buyer_commitment: int
    seller: str
    store: str
    item_price: int
    shipping_fee: int
    escrow_amount: int
    min_age_required: int
    seller_pays_shipping: bool
    created_at: int
    expires_at: int
    picked_up_at: Optional[int]
    status: str
    is_expired: bool

    @classmethod
    def from_package(cls, package: Package, now: int) -> "PackageInfo":
        return cls(
            package_id=bytes_to_hex(package.package_id),
            buyer_commitment=package.buyer_commitment,
            seller=package.seller,
            store=package.store,
            item_price=package.item_price,
            shipping_fee=package.shipping_fee,
            escrow_amount=package.escrow_amount,
            min_age_required=package.min_age_required,
            seller_pays_shipping=package.seller_pays_shipping,
            created_at=package.created_at,
            expires_at=package.expires_at,
            picked_up_at=package.picked_up_at,
            status=package.status.value,
            is_expired=package.status == PackageStatus.REGISTERED and now > package.expires_at,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class PackageRegistry:
    """Owns package records. Every method works inside the caller's transaction."""

    def __init__(self, roles: RoleRegistry, max_pickup_days: int):
        self.roles = roles
        self.max_pickup_days = max_pickup_days

    def register_package(
        self,
        repo: PickupRepository,
        caller: str,
        package_id: bytes,
        buyer_commitment: int,
        store: str,
        item_price: int,
        shipping_fee: int,
        min_age_required: int,
        seller_pays_shipping: bool,
        pickup_days: int,
        funds: int,
        now: int,
    ) -> Package:
        """
        Register a package for anonymous pickup and escrow its funds.

        Args:
            caller: Registering seller
            package_id: 32-byte content-addressed id
            buyer_commitment: Commitment the buyer will prove knowledge of
            store: Store the package is bound to
            item_price: Price of the item
            shipping_fee: Declared shipping fee
            min_age_required: 0 for no check, otherwise the age threshold
            seller_pays_shipping: Whether shipping is prepaid by the seller
            pickup_days: Length of the pickup window
            funds: Amount attached by the seller
            now: Transaction time (unix seconds)

        Returns:
            Package: The stored record

        Raises:
            UnauthorizedSellerError, UnauthorizedStoreError, DuplicatePackageError,
            InvalidWindowError, InvalidCommitmentError, InvalidAgeRequirementError,
            InvalidAmountError, InsufficientFundsError
        """
        caller = normalize_address(caller)
        store = normalize_address(store)

        seller = self.roles.require_registered_seller(repo, caller)
        self.roles.require_authorized_store(repo, store)

        if repo.get_package(package_id) is not None:
            raise DuplicatePackageError(f"Package {bytes_to_hex(package_id)} already exists")

        if not _is_int(pickup_days) or not 1 <= pickup_days <= self.max_pickup_days:
            raise InvalidWindowError(f"Pickup window must be between 1 and {self.max_pickup_days} days")

        if not _is_int(buyer_commitment) or not 0 < buyer_commitment <= MAX_U256:
            raise InvalidCommitmentError("Buyer commitment must be a non-zero 256-bit value")

        if not _is_int(min_age_required) or not 0 <= min_age_required <= MAX_AGE_REQUIREMENT:
            raise InvalidAgeRequirementError(f"Minimum age must be between 0 and {MAX_AGE_REQUIREMENT}")

        validate_amount(item_price, "Item price")
        validate_amount(shipping_fee, "Shipping fee")
        validate_amount(funds, "Funds")

        refund = 0
        if seller_pays_shipping:
            if funds < item_price + shipping_fee:
                raise InsufficientFundsError("Funds must cover item price and shipping")
            stored_shipping = funds - item_price
            if stored_shipping == 0:
                raise InsufficientFundsError("Seller-paid shipping must be greater than zero")
            escrow = funds
        else:
            if funds < item_price:
                raise InsufficientFundsError("Funds must cover the item price")
            stored_shipping = shipping_fee
            escrow = item_price
            refund = funds - item_price

        package = Package(
            package_id=package_id,
            buyer_commitment=buyer_commitment,
            seller=caller,
            store=store,
            item_price=item_price,
            shipping_fee=stored_shipping,
            escrow_amount=escrow,
            min_age_required=min_age_required,
            seller_pays_shipping=bool(seller_pays_shipping),
            created_at=now,
            expires_at=now + pickup_days * SECONDS_PER_DAY,
            status=PackageStatus.REGISTERED,
        )
        try:
            repo.add_package(package)
        except IntegrityError:
            raise DuplicatePackageError(f"Package {bytes_to_hex(package_id)} already exists")

        repo.increment(seller, "total_packages")
        repo.hold_escrow(escrow)
        if refund:
            repo.credit(caller, refund)

        repo.add_event(
            events.PACKAGE_REGISTERED,
            now,
            {
                "package_id": bytes_to_hex(package_id),
                "buyer_commitment": str(buyer_commitment),
                "seller": caller,
                "store": store,
                "item_price": item_price,
                "shipping_fee": stored_shipping,
                "escrow_amount": escrow,
                "refund": refund,
                "min_age_required": min_age_required,
                "seller_pays_shipping": bool(seller_pays_shipping),
                "expires_at": package.expires_at,
            },
            package_id=package_id,
            principal=caller,
        )
        logger.info(f"Package registered: {bytes_to_hex(package_id)[:10]}... store={store} escrow={escrow}")
        return package

    def require_package(self, repo: PickupRepository, package_id: bytes) -> Package:
        package = repo.get_package(package_id)
        if package is None:
            raise PackageNotFoundError(f"Package {bytes_to_hex(package_id)} not found")
        return package

    @staticmethod
    def require_registered(package: Package) -> None:
        if package.status == PackageStatus.PICKED_UP:
            raise AlreadyPickedUpError("Package already picked up")
        if package.status == PackageStatus.RECLAIMED:
            raise AlreadyReclaimedError("Package already reclaimed")

    def load_for_pickup(self, repo: PickupRepository, package_id: bytes, now: int) -> Package:
        """Fetch a package that is still open for pickup at ``now``."""
        package = self.require_package(repo, package_id)
        self.require_registered(package)
        if now > package.expires_at:
            raise PackageExpiredError("Pickup window has expired")
        return package

    def _close(self, repo: PickupRepository, package: Package, status: PackageStatus, now: int) -> None:
        """
        Close a package that this transaction saw as Registered and release
        its escrow. The status check is repeated by the UPDATE itself, so of
        two writers racing on one package only the first to commit succeeds.
        """
        picked_up_at = now if status == PackageStatus.PICKED_UP else None
        if not repo.close_package(package.package_id, status, picked_up_at):
            repo.refresh(package)
            self.require_registered(package)
            raise AlreadyPickedUpError("Package is no longer open for pickup")
        repo.release_escrow(package.escrow_amount)

    def mark_picked_up(self, repo: PickupRepository, package: Package, now: int) -> None:
        self._close(repo, package, PackageStatus.PICKED_UP, now)

    def can_pickup(self, repo: PickupRepository, package_id: bytes, now: int) -> bool:
        package = repo.get_package(package_id)
        return (
            package is not None
            and package.status == PackageStatus.REGISTERED
            and now <= package.expires_at
        )

    def get_package(self, repo: PickupRepository, package_id: bytes, now: int) -> PackageInfo:
        return PackageInfo.from_package(self.require_package(repo, package_id), now)

    def reclaim_expired(self, repo: PickupRepository, caller: str, package_id: bytes, now: int) -> Package:
        """
        Return an expired package's escrow to its seller.

        Raises:
            PackageNotFoundError: If the package does not exist
            NotPackageSellerError: If the caller did not register the package
            AlreadyPickedUpError, AlreadyReclaimedError: If the package is closed
            PackageNotExpiredError: If the pickup window is still open
        """
        caller = normalize_address(caller)
        package = self.require_package(repo, package_id)
        if caller != package.seller:
            raise NotPackageSellerError("Only the registering seller can reclaim a package")
        self.require_registered(package)
        if now <= package.expires_at:
            raise PackageNotExpiredError("Pickup window is still open")

        self._close(repo, package, PackageStatus.RECLAIMED, now)
        repo.credit(package.seller, package.escrow_amount)
        repo.add_event(
            events.PACKAGE_RECLAIMED,
            now,
            {"package_id": bytes_to_hex(package_id), "seller": caller, "amount": package.escrow_amount},
            package_id=package_id,
            principal=caller,
        )
        logger.info(f"Package reclaimed: {bytes_to_hex(package_id)[:10]}... amount={package.escrow_amount}")
        return package

    def escrow_total(self, repo: PickupRepository) -> int:
        """Funds currently held for open packages."""
        return repo.escrow_held()

    def open_packages(self, repo: PickupRepository) -> int:
        return repo.count_registered_packages()
