"""REST API endpoints for the anonymous pickup system.

Transport only: every endpoint authenticates the caller, parses its input
and delegates to ``AnonymousPickupSystem``. Protocol errors are mapped to
HTTP status codes by one exception handler.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zkpickup import __version__
from zkpickup.core.system import AnonymousPickupSystem
from zkpickup.exceptions import (
    AuthorizationError,
    ConfigurationError,
    FundsError,
    InvalidAddressError,
    PackageNotFoundError,
    PickupSystemError,
    ProofRejectedError,
    StateConflictError,
    ValidationError,
)
from zkpickup.models.schemas import (
    CanPickupResponse,
    ErrorResponse,
    EventListResponse,
    HealthResponse,
    NullifierResponse,
    PackageRegistrationRequest,
    PackageResponse,
    PickupRequest,
    PickupResponse,
    PlatformFeeRequest,
    PlatformFeeResponse,
    SellerResponse,
    StoreAuthorizationRequest,
    StoreResponse,
)
from zkpickup.security import verify_access_token
from zkpickup.utils.encoding import hex_to_bytes, normalize_address, parse_u256
from zkpickup.utils.hash import package_id_from_tracking_code

logger = logging.getLogger(__name__)


# Initialize FastAPI
app = FastAPI(
    title="ZK Pickup REST API",
    description="Anonymous package pickup authorized by zero-knowledge proofs",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def status_for(error: PickupSystemError) -> int:
    """HTTP status code for a protocol error."""
    if isinstance(error, PackageNotFoundError):
        return 404
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, StateConflictError):
        return 409
    if isinstance(error, FundsError):
        return 402
    if isinstance(error, ProofRejectedError):
        return 422
    if isinstance(error, ConfigurationError):
        return 500
    return 400


@app.exception_handler(PickupSystemError)
async def pickup_error_handler(request: Request, exc: PickupSystemError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=str(exc), code=exc.code).model_dump(),
    )


# Convert request validation errors (422) to 400 Bad Request; 422 means a rejected proof
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        error_messages.append(f"{field}: {error['msg']}")

    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="; ".join(error_messages), code="ValidationError").model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error", code="InternalError").model_dump(),
    )


@lru_cache
def get_system() -> AnonymousPickupSystem:
    """Process-wide pickup system built from settings."""
    return AnonymousPickupSystem.from_settings()


def get_caller(authorization: Optional[str] = Header(None)) -> str:
    """Get the calling principal's address from a bearer JWT."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    payload = verify_access_token(authorization[7:])
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        return normalize_address(payload.get("sub"))
    except InvalidAddressError:
        raise HTTPException(status_code=401, detail="Token subject is not an address")


def decode_proof(proof: str) -> bytes:
    """Hex proofs are decoded; anything else is taken as a UTF-8 JSON document."""
    if proof.startswith("0x"):
        try:
            return hex_to_bytes(proof)
        except ValueError:
            raise HTTPException(status_code=400, detail="Proof is not valid hex")
    return proof.encode("utf-8")


# ============================================================================
# System
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check(system: AnonymousPickupSystem = Depends(get_system)):
    """Health check endpoint."""
    stats = system.get_statistics()
    return HealthResponse(
        status="healthy",
        version=__version__,
        open_packages=stats["open_packages"],
        nullifiers_consumed=stats["nullifiers_consumed"],
    )


@app.get("/platform-fee", response_model=PlatformFeeResponse, tags=["System"])
def get_platform_fee(system: AnonymousPickupSystem = Depends(get_system)):
    return PlatformFeeResponse(rate=system.get_platform_fee_rate())


@app.put("/platform-fee", response_model=PlatformFeeResponse, tags=["Admin"])
def set_platform_fee(
    request: PlatformFeeRequest,
    caller: str = Depends(get_caller),
    system: AnonymousPickupSystem = Depends(get_system),
):
    return PlatformFeeResponse(rate=system.set_platform_fee_rate(caller, request.rate))


@app.get("/events", response_model=EventListResponse, tags=["System"])
def list_events(
    package_id: Optional[str] = None,
    name: Optional[str] = None,
    system: AnonymousPickupSystem = Depends(get_system),
):
    return EventListResponse(events=[e.to_dict() for e in system.get_events(package_id=package_id, name=name)])


# ============================================================================
# Roles
# ============================================================================


@app.post("/sellers", response_model=SellerResponse, status_code=201, tags=["Roles"])
def register_seller(caller: str = Depends(get_caller), system: AnonymousPickupSystem = Depends(get_system)):
    return SellerResponse(**system.register_seller(caller).to_dict())


@app.get("/sellers/{address}", response_model=SellerResponse, tags=["Roles"])
def get_seller(address: str, system: AnonymousPickupSystem = Depends(get_system)):
    return SellerResponse(**system.get_seller_info(address).to_dict())


@app.post("/stores", response_model=StoreResponse, tags=["Admin"])
def authorize_store(
    request: StoreAuthorizationRequest,
    caller: str = Depends(get_caller),
    system: AnonymousPickupSystem = Depends(get_system),
):
    info = system.authorize_store(caller, request.address, request.name, request.location, request.commission_rate)
    return StoreResponse(**info.to_dict())


@app.delete("/stores/{address}", response_model=StoreResponse, tags=["Admin"])
def deauthorize_store(
    address: str,
    caller: str = Depends(get_caller),
    system: AnonymousPickupSystem = Depends(get_system),
):
    return StoreResponse(**system.deauthorize_store(caller, address).to_dict())


@app.get("/stores/{address}", response_model=StoreResponse, tags=["Roles"])
def get_store(address: str, system: AnonymousPickupSystem = Depends(get_system)):
    return StoreResponse(**system.get_store_info(address).to_dict())


@app.get("/balances/{address}", tags=["Roles"])
def get_balance(address: str, system: AnonymousPickupSystem = Depends(get_system)):
    return {"address": normalize_address(address), "balance": system.get_balance(address)}


# ============================================================================
# Packages
# ============================================================================


@app.post("/packages", response_model=PackageResponse, status_code=201, tags=["Packages"])
def register_package(
    request: PackageRegistrationRequest,
    caller: str = Depends(get_caller),
    system: AnonymousPickupSystem = Depends(get_system),
):
    if request.package_id:
        package_id = request.package_id
    elif request.tracking_code:
        package_id = package_id_from_tracking_code(request.tracking_code)
    else:
        raise HTTPException(status_code=400, detail="Either package_id or tracking_code is required")

    info = system.register_package(
        caller,
        package_id,
        request.buyer_commitment,
        request.store,
        request.item_price,
        request.shipping_fee,
        min_age_required=request.min_age_required,
        seller_pays_shipping=request.seller_pays_shipping,
        pickup_days=request.pickup_days,
        funds=request.funds,
    )
    return PackageResponse(**info.to_dict())


@app.get("/packages/{package_id}", response_model=PackageResponse, tags=["Packages"])
def get_package(package_id: str, system: AnonymousPickupSystem = Depends(get_system)):
    return PackageResponse(**system.get_package(package_id).to_dict())


@app.get("/packages/{package_id}/can-pickup", response_model=CanPickupResponse, tags=["Packages"])
def can_pickup(package_id: str, system: AnonymousPickupSystem = Depends(get_system)):
    return CanPickupResponse(package_id=package_id, can_pickup=system.can_pickup(package_id))


@app.post("/packages/{package_id}/pickup", response_model=PickupResponse, tags=["Packages"])
def execute_pickup(
    package_id: str,
    request: PickupRequest,
    caller: str = Depends(get_caller),
    system: AnonymousPickupSystem = Depends(get_system),
):
    receipt = system.execute_pickup(
        caller,
        package_id,
        decode_proof(request.proof),
        request.nullifier,
        shipping_payment=request.shipping_payment,
        buyer_identity=request.buyer_identity,
    )
    return PickupResponse(**receipt.to_dict())


@app.post("/packages/{package_id}/reclaim", response_model=PackageResponse, tags=["Packages"])
def reclaim_package(
    package_id: str,
    caller: str = Depends(get_caller),
    system: AnonymousPickupSystem = Depends(get_system),
):
    return PackageResponse(**system.reclaim_expired(caller, package_id).to_dict())


@app.get("/nullifiers/{value}", response_model=NullifierResponse, tags=["Packages"])
def get_nullifier(value: str, system: AnonymousPickupSystem = Depends(get_system)):
    try:
        nullifier = parse_u256(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Nullifier must be a decimal or 0x-hex integer")
    return NullifierResponse(nullifier=str(nullifier), used=system.is_nullifier_used(nullifier))
