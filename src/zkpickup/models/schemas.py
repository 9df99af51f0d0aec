"""Pydantic data models for the pickup HTTP API.

256-bit values (commitments, nullifiers) are accepted as JSON integers,
decimal strings or 0x-prefixed hex, and returned as decimal strings.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from zkpickup.utils.encoding import parse_u256

U256Input = Union[int, str]


class StoreAuthorizationRequest(BaseModel):
    """Request model for authorizing or updating a store."""
    address: str = Field(..., description="Store address (0x + 40 hex)")
    name: str = Field(..., max_length=255)
    location: str = Field(..., max_length=255)
    commission_rate: int = Field(..., description="Commission in basis points")


class PlatformFeeRequest(BaseModel):
    """Request model for changing the platform fee rate."""
    rate: int = Field(..., description="Platform fee in basis points")


class PackageRegistrationRequest(BaseModel):
    """Request model for registering a package."""
    package_id: Optional[str] = Field(None, description="Package id (0x hex, 32 bytes)")
    tracking_code: Optional[str] = Field(None, description="Used to derive the id when package_id is omitted")
    buyer_commitment: U256Input = Field(..., description="Buyer commitment")
    store: str = Field(..., description="Store the package is bound to")
    item_price: int = Field(..., ge=0)
    shipping_fee: int = Field(..., ge=0)
    min_age_required: int = Field(0, ge=0)
    seller_pays_shipping: bool = True
    pickup_days: int = Field(7, description="Pickup window in days")
    funds: Optional[int] = Field(None, ge=0, description="Attached funds; defaults to the required amount")

    @field_validator("buyer_commitment")
    @classmethod
    def _parse_commitment(cls, value: U256Input) -> int:
        return parse_u256(value)


class PickupRequest(BaseModel):
    """Request model for executing a pickup."""
    proof: str = Field(..., description="Proof as 0x hex, or a snarkjs proof JSON document")
    nullifier: U256Input = Field(..., description="Single-use nullifier")
    shipping_payment: int = Field(0, ge=0)
    buyer_identity: Optional[str] = Field(None, max_length=255, description="Store-side id for buyer statistics")

    @field_validator("nullifier")
    @classmethod
    def _parse_nullifier(cls, value: U256Input) -> int:
        return parse_u256(value)


class PackageResponse(BaseModel):
    """Response model for a package."""
    package_id: str
    buyer_commitment: str
    seller: str
    store: str
    item_price: int
    shipping_fee: int
    escrow_amount: int
    min_age_required: int
    seller_pays_shipping: bool
    created_at: int
    expires_at: int
    picked_up_at: Optional[int] = None
    status: str
    is_expired: bool

    @field_validator("buyer_commitment", mode="before")
    @classmethod
    def _stringify(cls, value: U256Input) -> str:
        return str(value)


class CanPickupResponse(BaseModel):
    package_id: str
    can_pickup: bool


class PickupResponse(BaseModel):
    """Response model for a completed pickup."""
    package_id: str
    store: str
    picked_up_at: int
    total: int
    seller_amount: int
    store_commission: int
    platform_fee: int


class SellerResponse(BaseModel):
    address: str
    is_registered: bool
    total_packages: int
    successful_deliveries: int
    registered_at: Optional[int] = None


class StoreResponse(BaseModel):
    address: str
    is_authorized: bool
    name: str
    location: str
    commission_rate: int
    total_pickups: int


class NullifierResponse(BaseModel):
    nullifier: str
    used: bool


class PlatformFeeResponse(BaseModel):
    rate: int


class EventResponse(BaseModel):
    sequence: int
    name: str
    package_id: Optional[str] = None
    principal: Optional[str] = None
    payload: dict
    created_at: int


class EventListResponse(BaseModel):
    events: List[EventResponse]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    version: str
    open_packages: int
    nullifiers_consumed: int


class ErrorResponse(BaseModel):
    """Error response."""
    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
