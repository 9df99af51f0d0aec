"""Keyed access to the pickup tables within one unit of work.

Components never hold sessions of their own: the system facade opens a
transaction and hands each component a ``PickupRepository`` bound to it.
"""

import json
from typing import List, Optional

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from zkpickup.storage.database import (
    AccountBalance,
    BuyerStats,
    Event,
    Nullifier,
    Package,
    PackageStatus,
    Seller,
    Store,
    SystemSetting,
)

# Balance row holding the funds of every open package. Principal addresses
# are 0x-prefixed, so this key never collides with one.
ESCROW_ACCOUNT = "escrow"


class PickupRepository:
    """Repository over the package, nullifier, role, balance and event tables."""

    def __init__(self, session: Session):
        self.session = session

    # Packages
    def get_package(self, package_id: bytes) -> Optional[Package]:
        return self.session.query(Package).filter_by(package_id=package_id).first()

    def add_package(self, package: Package) -> Package:
        self.session.add(package)
        self.session.flush()
        return package

    def count_registered_packages(self) -> int:
        return (
            self.session.query(func.count(Package.id))
            .filter(Package.status == PackageStatus.REGISTERED)
            .scalar()
        )

    def close_package(
        self, package_id: bytes, status: PackageStatus, picked_up_at: Optional[int] = None
    ) -> bool:
        """
        Move a Registered package to ``status`` in one conditional UPDATE.

        Returns False when the row is no longer Registered, e.g. because a
        concurrent writer closed it after this transaction read it.
        """
        values = {Package.status: status}
        if picked_up_at is not None:
            values[Package.picked_up_at] = picked_up_at
        updated = (
            self.session.query(Package)
            .filter(Package.package_id == package_id, Package.status == PackageStatus.REGISTERED)
            .update(values, synchronize_session="fetch")
        )
        return updated == 1

    def refresh(self, record) -> None:
        self.session.refresh(record)

    # Nullifiers
    def get_nullifier(self, nullifier: int) -> Optional[Nullifier]:
        return self.session.query(Nullifier).filter_by(nullifier=nullifier).first()

    def add_nullifier(self, record: Nullifier) -> Nullifier:
        self.session.add(record)
        self.session.flush()
        return record

    def count_nullifiers(self) -> int:
        return self.session.query(Nullifier).count()

    # Roles
    def get_seller(self, address: str) -> Optional[Seller]:
        return self.session.get(Seller, address)

    def add_seller(self, seller: Seller) -> Seller:
        self.session.add(seller)
        self.session.flush()
        return seller

    def get_store(self, address: str) -> Optional[Store]:
        return self.session.get(Store, address)

    def add_store(self, store: Store) -> Store:
        self.session.add(store)
        self.session.flush()
        return store

    def get_buyer_stats(self, identity: str) -> Optional[BuyerStats]:
        return self.session.get(BuyerStats, identity)

    def get_or_create_buyer_stats(self, identity: str) -> BuyerStats:
        stats = self.get_buyer_stats(identity)
        if stats is None:
            stats = BuyerStats(identity=identity, total_pickups=0)
            self.session.add(stats)
        return stats

    def increment(self, record, field: str, amount: int = 1) -> None:
        """Bump an integer counter as ``field = field + amount`` in SQL."""
        if inspect(record).persistent:
            setattr(record, field, getattr(type(record), field) + amount)
            self.session.flush()
        else:
            setattr(record, field, (getattr(record, field) or 0) + amount)

    # Balances
    def get_balance(self, address: str) -> int:
        account = self.session.get(AccountBalance, address)
        return account.balance if account else 0

    def _adjust(self, address: str, delta: int) -> int:
        # Re-read under FOR UPDATE; balances are decimal strings, so the
        # addition cannot be pushed into SQL.
        account = self.session.get(AccountBalance, address, with_for_update=True, populate_existing=True)
        if account is None:
            account = AccountBalance(address=address, balance=0)
            self.session.add(account)
        balance = account.balance + delta
        if balance < 0:
            raise ValueError(f"Balance of {address} would go negative")
        account.balance = balance
        self.session.flush()
        return balance

    def credit(self, address: str, amount: int) -> int:
        """Add ``amount`` to an account and return the new balance."""
        return self._adjust(address, amount)

    # Escrow
    def escrow_held(self) -> int:
        return self.get_balance(ESCROW_ACCOUNT)

    def hold_escrow(self, amount: int) -> int:
        return self._adjust(ESCROW_ACCOUNT, amount)

    def release_escrow(self, amount: int) -> int:
        return self._adjust(ESCROW_ACCOUNT, -amount)

    # Settings
    def get_setting(self, key: str) -> Optional[str]:
        setting = self.session.get(SystemSetting, key)
        return setting.value if setting else None

    def set_setting(self, key: str, value: str) -> None:
        setting = self.session.get(SystemSetting, key)
        if setting is None:
            self.session.add(SystemSetting(key=key, value=value))
        else:
            setting.value = value
        self.session.flush()

    # Events
    def add_event(
        self,
        name: str,
        created_at: int,
        payload: dict,
        package_id: Optional[bytes] = None,
        principal: Optional[str] = None,
    ) -> Event:
        event = Event(
            name=name,
            package_id=package_id,
            principal=principal,
            payload=json.dumps(payload, sort_keys=True),
            created_at=created_at,
        )
        self.session.add(event)
        self.session.flush()
        return event

    def list_events(
        self, package_id: Optional[bytes] = None, name: Optional[str] = None
    ) -> List[Event]:
        query = self.session.query(Event)
        if package_id is not None:
            query = query.filter_by(package_id=package_id)
        if name is not None:
            query = query.filter_by(name=name)
        return query.order_by(Event.id).all()
