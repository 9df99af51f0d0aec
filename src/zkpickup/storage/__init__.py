"""Storage layer for persistent data."""

from zkpickup.storage.database import (
    AccountBalance,
    Base,
    BuyerStats,
    DatabaseManager,
    Event,
    Nullifier,
    Package,
    PackageStatus,
    Seller,
    Store,
    SystemSetting,
)
from zkpickup.storage.repository import PickupRepository

__all__ = [
    "AccountBalance",
    "Base",
    "BuyerStats",
    "DatabaseManager",
    "Event",
    "Nullifier",
    "Package",
    "PackageStatus",
    "PickupRepository",
    "Seller",
    "Store",
    "SystemSetting",
]
