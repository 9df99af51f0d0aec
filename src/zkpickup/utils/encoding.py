"""Encoding and decoding utilities."""

import re
from typing import Union

from zkpickup.exceptions import InvalidAddressError, InvalidPackageIdError

WORD_SIZE = 32
MAX_U256 = 2**256 - 1

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def int_to_word(value: int) -> bytes:
    """Encode an unsigned integer as a 32-byte big-endian word."""
    if value < 0 or value > MAX_U256:
        raise ValueError("Value does not fit in 256 bits")
    return value.to_bytes(WORD_SIZE, "big")


def word_to_int(word: bytes) -> int:
    """Decode a big-endian word into an unsigned integer."""
    return int.from_bytes(word, "big")


def normalize_address(address: str) -> str:
    """
    Validate a principal address and return its lowercase form.

    Raises:
        InvalidAddressError: If the address is not 0x followed by 40 hex digits
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return address.lower()


def address_to_int(address: str) -> int:
    """Read an address as an unsigned integer (for public signals)."""
    return int(normalize_address(address), 16)


def parse_package_id(value: Union[bytes, str]) -> bytes:
    """
    Accept a package id as 32 raw bytes or a 0x-prefixed hex string.

    Raises:
        InvalidPackageIdError: If the id is not 32 bytes or is all zeros
    """
    if isinstance(value, str):
        try:
            value = hex_to_bytes(value)
        except ValueError as e:
            raise InvalidPackageIdError(f"Invalid package id: {e}")
    if not isinstance(value, bytes) or len(value) != WORD_SIZE:
        raise InvalidPackageIdError("Package id must be 32 bytes")
    if not any(value):
        raise InvalidPackageIdError("Package id must not be zero")
    return value


def parse_u256(value: Union[int, str]) -> int:
    """Accept an integer or a decimal/0x-hex string and return it as an int."""
    if isinstance(value, bool):
        raise ValueError("Booleans are not integers here")
    if isinstance(value, str):
        value = int(value, 16) if value.startswith("0x") else int(value)
    if not isinstance(value, int) or value < 0 or value > MAX_U256:
        raise ValueError("Value must be an unsigned 256-bit integer")
    return value
