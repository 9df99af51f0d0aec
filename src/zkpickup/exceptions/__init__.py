"""Custom exceptions for the anonymous pickup system.

Every leaf exception carries a stable ``code`` so callers (and the HTTP
layer) can match on the failure kind without parsing messages.
"""


class PickupSystemError(Exception):
    """Base exception for all pickup system errors."""

    code = "PickupSystemError"


class ConfigurationError(PickupSystemError):
    """Raised when settings are missing or out of range."""

    code = "ConfigurationError"


# Validation Errors
class ValidationError(PickupSystemError):
    """Base exception for malformed or out-of-range input."""

    code = "ValidationError"


class InvalidCommitmentError(ValidationError):
    """Raised when a buyer commitment is zero or not a 256-bit value."""

    code = "InvalidCommitment"


class InvalidNullifierError(ValidationError):
    """Raised when a nullifier is zero or not a 256-bit value."""

    code = "InvalidNullifier"


class InvalidPackageIdError(ValidationError):
    """Raised when a package id is not 32 bytes or is all zeros."""

    code = "InvalidPackageId"


class InvalidAddressError(ValidationError):
    """Raised when a principal address is malformed."""

    code = "InvalidAddress"


class InvalidWindowError(ValidationError):
    """Raised when the pickup window is outside the allowed range."""

    code = "InvalidWindow"


class InvalidAmountError(ValidationError):
    """Raised when a monetary amount is negative or not an integer."""

    code = "InvalidAmount"


class InvalidAgeRequirementError(ValidationError):
    """Raised when the minimum age is outside the supported range."""

    code = "InvalidAgeRequirement"


class InvalidFeeRateError(ValidationError):
    """Raised when a fee or commission rate exceeds its cap."""

    code = "InvalidFeeRate"


class UnexpectedPaymentError(ValidationError):
    """Raised when a shipping payment is sent for a seller-paid package."""

    code = "UnexpectedPayment"


class PackageNotFoundError(ValidationError):
    """Raised when no package exists for the given id."""

    code = "PackageNotFound"


# Authorization Errors
class AuthorizationError(PickupSystemError):
    """Base exception for callers lacking the required role."""

    code = "AuthorizationError"


class UnauthorizedSellerError(AuthorizationError):
    """Raised when the caller is not a registered seller."""

    code = "UnauthorizedSeller"


class UnauthorizedStoreError(AuthorizationError):
    """Raised when a store is not authorized."""

    code = "UnauthorizedStore"


class WrongStoreError(AuthorizationError):
    """Raised when a store tries to pick up a package bound to another store."""

    code = "WrongStore"


class NotOwnerError(AuthorizationError):
    """Raised when a non-owner calls an administrative operation."""

    code = "NotOwner"


class NotPackageSellerError(AuthorizationError):
    """Raised when someone other than the package's seller reclaims it."""

    code = "NotPackageSeller"


# State Conflict Errors
class StateConflictError(PickupSystemError):
    """Base exception for replays, races and lifecycle violations."""

    code = "StateConflictError"


class DuplicatePackageError(StateConflictError):
    """Raised when a package id is registered twice."""

    code = "DuplicatePackage"


class AlreadyPickedUpError(StateConflictError):
    """Raised when a package has already been picked up."""

    code = "AlreadyPickedUp"


class AlreadyReclaimedError(StateConflictError):
    """Raised when the seller already reclaimed the package's escrow."""

    code = "AlreadyReclaimed"


class PackageExpiredError(StateConflictError):
    """Raised when the pickup window has closed."""

    code = "PackageExpired"


class PackageNotExpiredError(StateConflictError):
    """Raised when reclaiming a package whose window is still open."""

    code = "PackageNotExpired"


class NullifierAlreadyUsedError(StateConflictError):
    """Raised when a nullifier has already been consumed."""

    code = "NullifierAlreadyUsed"


class SellerAlreadyRegisteredError(StateConflictError):
    """Raised when a seller registers twice."""

    code = "SellerAlreadyRegistered"


# Funds Errors
class FundsError(PickupSystemError):
    """Base exception for insufficient payments."""

    code = "FundsError"


class InsufficientFundsError(FundsError):
    """Raised when registration funds do not cover the escrow."""

    code = "InsufficientFunds"


class InsufficientShippingPaymentError(FundsError):
    """Raised when the pickup payment does not cover buyer-paid shipping."""

    code = "InsufficientShippingPayment"


# Proof Errors
class ProofRejectedError(PickupSystemError):
    """Raised when the verifier rejects a pickup proof.

    Not retriable: the buyer has to produce a fresh proof.
    """

    code = "ProofRejected"


class ProverError(PickupSystemError):
    """Raised client-side when the witness does not satisfy the circuit."""

    code = "ProverError"
