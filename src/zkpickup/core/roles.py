"""Seller registration, store authorization and platform fee administration."""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from zkpickup.config import MAX_COMMISSION_RATE, MAX_PLATFORM_FEE_RATE
from zkpickup.core import events
from zkpickup.exceptions import (
    InvalidFeeRateError,
    NotOwnerError,
    SellerAlreadyRegisteredError,
    UnauthorizedSellerError,
    UnauthorizedStoreError,
)
from zkpickup.storage import PickupRepository, Seller, Store
from zkpickup.utils.encoding import normalize_address

logger = logging.getLogger(__name__)

PLATFORM_FEE_KEY = "platform_fee_rate"


@dataclass(frozen=True)
class SellerInfo:
    """Public view of a seller."""

    address: str
    is_registered: bool
    total_packages: int
    successful_deliveries: int
    registered_at: Optional[int]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StoreInfo:
    """Public view of a store."""

    address: str
    is_authorized: bool
    name: str
    location: str
    commission_rate: int
    total_pickups: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BuyerStatsInfo:
    identity: str
    total_pickups: int
    last_pickup_time: Optional[int]

    def to_dict(self) -> dict:
        return asdict(self)


def validate_commission_rate(rate: int) -> int:
    if not isinstance(rate, int) or isinstance(rate, bool) or not 0 <= rate <= MAX_COMMISSION_RATE:
        raise InvalidFeeRateError(f"Commission rate must be between 0 and {MAX_COMMISSION_RATE} bps")
    return rate


def validate_platform_fee_rate(rate: int) -> int:
    if not isinstance(rate, int) or isinstance(rate, bool) or not 0 <= rate <= MAX_PLATFORM_FEE_RATE:
        raise InvalidFeeRateError(f"Platform fee rate must be between 0 and {MAX_PLATFORM_FEE_RATE} bps")
    return rate


class RoleRegistry:
    """
    Owner-administered allow-lists plus seller self-registration.

    Stores are mutated only by the owner; sellers register themselves.
    """

    def __init__(self, owner: str, default_platform_fee_rate: int):
        self.owner = normalize_address(owner)
        self.default_platform_fee_rate = validate_platform_fee_rate(default_platform_fee_rate)

    def require_owner(self, caller: str) -> str:
        caller = normalize_address(caller)
        if caller != self.owner:
            raise NotOwnerError("Only the owner can perform this operation")
        return caller

    def register_seller(self, repo: PickupRepository, caller: str, now: int) -> Seller:
        caller = normalize_address(caller)
        seller = repo.get_seller(caller)
        if seller is not None:
            raise SellerAlreadyRegisteredError(f"Seller {caller} is already registered")

        seller = repo.add_seller(
            Seller(
                address=caller,
                is_registered=True,
                total_packages=0,
                successful_deliveries=0,
                registered_at=now,
            )
        )
        repo.add_event(events.SELLER_REGISTERED, now, {"seller": caller}, principal=caller)
        logger.info(f"Seller registered: {caller}")
        return seller

    def authorize_store(
        self,
        repo: PickupRepository,
        caller: str,
        address: str,
        name: str,
        location: str,
        commission_rate: int,
        now: int,
    ) -> Store:
        """Authorize a store, or update an existing store's details and re-authorize it."""
        self.require_owner(caller)
        address = normalize_address(address)
        validate_commission_rate(commission_rate)

        store = repo.get_store(address)
        if store is None:
            store = repo.add_store(
                Store(
                    address=address,
                    is_authorized=True,
                    name=name,
                    location=location,
                    commission_rate=commission_rate,
                    total_pickups=0,
                    authorized_at=now,
                )
            )
        else:
            store.is_authorized = True
            store.name = name
            store.location = location
            store.commission_rate = commission_rate
            store.authorized_at = now

        repo.add_event(
            events.STORE_AUTHORIZED,
            now,
            {"store": address, "name": name, "location": location, "commission_rate": commission_rate},
            principal=address,
        )
        logger.info(f"Store authorized: {address} ({commission_rate} bps)")
        return store

    def deauthorize_store(self, repo: PickupRepository, caller: str, address: str, now: int) -> Store:
        self.require_owner(caller)
        address = normalize_address(address)
        store = repo.get_store(address)
        if store is None or not store.is_authorized:
            raise UnauthorizedStoreError(f"Store {address} is not authorized")

        store.is_authorized = False
        repo.add_event(events.STORE_DEAUTHORIZED, now, {"store": address}, principal=address)
        logger.info(f"Store deauthorized: {address}")
        return store

    def set_platform_fee_rate(self, repo: PickupRepository, caller: str, rate: int, now: int) -> int:
        self.require_owner(caller)
        validate_platform_fee_rate(rate)
        previous = self.platform_fee_rate(repo)
        repo.set_setting(PLATFORM_FEE_KEY, str(rate))
        repo.add_event(events.PLATFORM_FEE_UPDATED, now, {"previous": previous, "rate": rate})
        logger.info(f"Platform fee rate changed from {previous} to {rate} bps")
        return rate

    def platform_fee_rate(self, repo: PickupRepository) -> int:
        stored = repo.get_setting(PLATFORM_FEE_KEY)
        return int(stored) if stored is not None else self.default_platform_fee_rate

    def require_registered_seller(self, repo: PickupRepository, address: str) -> Seller:
        seller = repo.get_seller(address)
        if seller is None or not seller.is_registered:
            raise UnauthorizedSellerError(f"{address} is not a registered seller")
        return seller

    def require_authorized_store(self, repo: PickupRepository, address: str) -> Store:
        store = repo.get_store(address)
        if store is None or not store.is_authorized:
            raise UnauthorizedStoreError(f"{address} is not an authorized store")
        return store

    # Queries
    def seller_info(self, repo: PickupRepository, address: str) -> SellerInfo:
        address = normalize_address(address)
        seller = repo.get_seller(address)
        if seller is None:
            return SellerInfo(address, False, 0, 0, None)
        return SellerInfo(
            address=address,
            is_registered=seller.is_registered,
            total_packages=seller.total_packages,
            successful_deliveries=seller.successful_deliveries,
            registered_at=seller.registered_at,
        )

    def store_info(self, repo: PickupRepository, address: str) -> StoreInfo:
        address = normalize_address(address)
        store = repo.get_store(address)
        if store is None:
            return StoreInfo(address, False, "", "", 0, 0)
        return StoreInfo(
            address=address,
            is_authorized=store.is_authorized,
            name=store.name,
            location=store.location,
            commission_rate=store.commission_rate,
            total_pickups=store.total_pickups,
        )

    def buyer_stats(self, repo: PickupRepository, identity: str) -> BuyerStatsInfo:
        stats = repo.get_buyer_stats(identity)
        if stats is None:
            return BuyerStatsInfo(identity, 0, None)
        return BuyerStatsInfo(identity, stats.total_pickups, stats.last_pickup_time)
