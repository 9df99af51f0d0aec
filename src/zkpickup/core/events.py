"""Event names and the read-side view of the event log."""

import json
from dataclasses import dataclass
from typing import Optional

from zkpickup.utils.encoding import bytes_to_hex

SELLER_REGISTERED = "SellerRegistered"
STORE_AUTHORIZED = "StoreAuthorized"
STORE_DEAUTHORIZED = "StoreDeauthorized"
PLATFORM_FEE_UPDATED = "PlatformFeeUpdated"
PACKAGE_REGISTERED = "PackageRegistered"
PACKAGE_PICKED_UP = "PackagePickedUp"
PAYMENT_PROCESSED = "PaymentProcessed"
PACKAGE_RECLAIMED = "PackageReclaimed"


@dataclass(frozen=True)
class EventRecord:
    """One entry of the append-only event log."""

    sequence: int
    name: str
    package_id: Optional[bytes]
    principal: Optional[str]
    payload: dict
    created_at: int

    @classmethod
    def from_row(cls, row) -> "EventRecord":
        return cls(
            sequence=row.id,
            name=row.name,
            package_id=row.package_id,
            principal=row.principal,
            payload=json.loads(row.payload),
            created_at=row.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "name": self.name,
            "package_id": bytes_to_hex(self.package_id) if self.package_id else None,
            "principal": self.principal,
            "payload": self.payload,
            "created_at": self.created_at,
        }
