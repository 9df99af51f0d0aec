"""Buyer commitments and pickup nullifiers.

A buyer is known to the system only by

    commitment = H(secret, name_hash, phone_last_three)

and authorizes each pickup with a fresh

    nullifier = H(secret, package_id, nonce, store)

where H is Keccak-256 over 32-byte words reduced into the BN254 scalar field.
The registry stores commitments and consumes nullifiers; it never computes
either. These helpers run on the buyer's side and in tests.
"""

import secrets
from dataclasses import dataclass, field

from zkpickup.exceptions import InvalidCommitmentError, InvalidNullifierError
from zkpickup.utils.encoding import MAX_U256, address_to_int, parse_package_id, word_to_int
from zkpickup.utils.hash import FIELD_MODULUS, hash_to_field, keccak256, to_field


class Commitment:
    """
    Commitment and nullifier derivation.

    All outputs are field elements, so they can be fed to the pickup
    circuit as public inputs.
    """

    SECRET_SIZE = 32  # bytes
    PHONE_DIGITS = 3

    @staticmethod
    def generate_secret() -> int:
        """
        Generate a random buyer secret.

        Returns:
            int: Non-zero field element from 32 bytes of OS randomness
        """
        while True:
            secret = int.from_bytes(secrets.token_bytes(Commitment.SECRET_SIZE), "big") % FIELD_MODULUS
            if secret:
                return secret

    @staticmethod
    def hash_name(name: str) -> int:
        """Hash a (normalized) buyer name into the field."""
        normalized = " ".join(name.split()).lower()
        if not normalized:
            raise InvalidCommitmentError("Name must not be empty")
        return to_field(keccak256(normalized))

    @staticmethod
    def phone_last_three(phone: str) -> int:
        """Return the last three digits of a phone number as an integer."""
        digits = "".join(ch for ch in phone if ch.isdigit())
        if len(digits) < Commitment.PHONE_DIGITS:
            raise InvalidCommitmentError("Phone number needs at least three digits")
        return int(digits[-Commitment.PHONE_DIGITS:])

    @staticmethod
    def compute_commitment(secret: int, name_hash: int, phone_last_three: int) -> int:
        """
        Compute the buyer commitment H(secret, name_hash, phone_last_three).

        Raises:
            InvalidCommitmentError: If the secret is zero or inputs are out of range
        """
        if not 0 < secret < FIELD_MODULUS:
            raise InvalidCommitmentError("Secret must be a non-zero field element")
        if not 0 <= name_hash < FIELD_MODULUS:
            raise InvalidCommitmentError("Name hash must be a field element")
        if not 0 <= phone_last_three < 1000:
            raise InvalidCommitmentError("Phone suffix must have three digits")

        return hash_to_field(secret, name_hash, phone_last_three)

    @staticmethod
    def compute_nullifier(secret: int, package_id: bytes, nonce: int, store: str) -> int:
        """
        Compute the pickup nullifier H(secret, package_id, nonce, store).

        Distinct per (package, store, nonce), so every pickup attempt gets
        its own single-use token.

        Raises:
            InvalidNullifierError: If the secret or nonce is invalid
        """
        if not 0 < secret < FIELD_MODULUS:
            raise InvalidNullifierError("Secret must be a non-zero field element")
        if nonce < 0 or nonce > MAX_U256:
            raise InvalidNullifierError("Nonce must be an unsigned 256-bit integer")

        package_id = parse_package_id(package_id)
        return hash_to_field(secret, word_to_int(package_id), nonce, address_to_int(store))

    @staticmethod
    def verify_commitment(secret: int, name_hash: int, phone_last_three: int, expected: int) -> bool:
        """Check that a commitment opens to the given attributes."""
        try:
            return Commitment.compute_commitment(secret, name_hash, phone_last_three) == expected
        except InvalidCommitmentError:
            return False


@dataclass
class BuyerIdentity:
    """
    The buyer's private attributes, held on the buyer's device only.

    ``nonce`` advances after every prepared pickup so repeated attempts at
    the same store never reuse a nullifier.
    """

    secret: int
    name_hash: int
    phone_last_three: int
    nonce: int = field(default=0)

    @classmethod
    def create(cls, name: str, phone: str) -> "BuyerIdentity":
        """Create an identity with a fresh random secret."""
        return cls(
            secret=Commitment.generate_secret(),
            name_hash=Commitment.hash_name(name),
            phone_last_three=Commitment.phone_last_three(phone),
        )

    @property
    def commitment(self) -> int:
        return Commitment.compute_commitment(self.secret, self.name_hash, self.phone_last_three)

    def nullifier_for(self, package_id: bytes, store: str, nonce: int) -> int:
        return Commitment.compute_nullifier(self.secret, package_id, nonce, store)

    def next_nullifier(self, package_id: bytes, store: str) -> tuple[int, int]:
        """
        Derive the nullifier for the next pickup attempt and advance the nonce.

        Returns:
            Tuple of (nonce used, nullifier)
        """
        nonce = self.nonce
        nullifier = self.nullifier_for(package_id, store, nonce)
        self.nonce += 1
        return nonce, nullifier
