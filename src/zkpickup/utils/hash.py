"""Cryptographic hash utilities."""

from typing import Union

from Crypto.Hash import keccak

from zkpickup.utils.encoding import int_to_word

# Scalar field of BN254 (alt_bn128), the curve the pickup circuit runs over.
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash of data.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte Keccak-256 digest
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    digest = keccak.new(digest_bits=256)
    digest.update(data)
    return digest.digest()


def hash_words(*values: int) -> bytes:
    """
    Hash unsigned integers encoded as consecutive 32-byte words.

    Matches ABI encoding of a tuple of uint256 values.
    """
    return keccak256(b"".join(int_to_word(v) for v in values))


def to_field(data: bytes) -> int:
    """Reduce a digest into the circuit's scalar field."""
    return int.from_bytes(data, "big") % FIELD_MODULUS


def hash_to_field(*values: int) -> int:
    """Hash words and reduce the digest into the scalar field."""
    return to_field(hash_words(*values))


def package_id_from_tracking_code(tracking_code: str) -> bytes:
    """
    Derive the content-addressed package id from a tracking code.

    Args:
        tracking_code: Human-readable code such as "PKG2024001"

    Returns:
        bytes: keccak256(utf8(tracking_code))
    """
    if not tracking_code:
        raise ValueError("Tracking code must not be empty")
    return keccak256(tracking_code)
