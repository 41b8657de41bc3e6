"""Conversions between the canonical fixed-width byte representation and python values.

Every 256-bit unsigned integer crossing the library boundary is a 32 byte big-endian buffer,
every address a 20 byte buffer, and every hash a 32 byte buffer.
"""

from __future__ import annotations

import re
from typing import Any

from eth_typing import ChecksumAddress
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes

from .errors import InvalidAddress, UnsupportedConversion

UINT256_MAX = 2**256 - 1
_DECIMAL_TEXT = re.compile(r"[0-9]+")
_HEX_TEXT = re.compile(r"[0-9a-fA-F]+")


def strip_hex_prefix(value: str) -> str:
    """Remove an optional `0x` prefix."""
    if value.startswith(("0x", "0X")):
        return value[2:]
    return value


def uint256_to_bytes(value: int) -> bytes:
    """Serialize an integer as a 32 byte big-endian buffer.

    Arguments
    ---------
    value: int
        The integer, must fit in 256 unsigned bits.

    Returns
    -------
    bytes
        The 32 byte buffer.
    """
    if value < 0 or value > UINT256_MAX:
        raise UnsupportedConversion(f"{value=} does not fit in 256 unsigned bits")
    return value.to_bytes(32, byteorder="big")


def bytes_to_uint256(value: bytes) -> int:
    """Interpret a big-endian buffer of at most 32 bytes as an unsigned integer."""
    if len(value) > 32:
        raise UnsupportedConversion(f"buffer of {len(value)} bytes does not fit in 256 bits")
    return int.from_bytes(value, byteorder="big")


def parse_uint256_text(value: str) -> int:
    """Parse a decimal or `0x`-prefixed hex string as a 256-bit unsigned integer."""
    text = value.strip()
    if text.startswith(("0x", "0X")):
        digits, pattern, base = text[2:], _HEX_TEXT, 16
    else:
        digits, pattern, base = text, _DECIMAL_TEXT, 10
    # int() alone would also take signs, underscores and non-ascii digits
    if pattern.fullmatch(digits) is None:
        raise UnsupportedConversion(f"Failed to parse {value!r} as a big integer")
    result = int(digits, base)
    if result < 0 or result > UINT256_MAX:
        raise UnsupportedConversion(f"{value!r} does not fit in 256 unsigned bits")
    return result


def parse_address(value: Any) -> bytes:
    """Parse an address given as hex text (with or without `0x`) or as a 20 byte buffer.

    Arguments
    ---------
    value: Any
        The value to parse.

    Returns
    -------
    bytes
        The 20 byte address.
    """
    match value:
        case str():
            hex_digits = strip_hex_prefix(value.strip())
            if len(hex_digits) != 40:
                raise InvalidAddress(f"Failed to parse address {value!r}")
            try:
                return bytes.fromhex(hex_digits)
            except ValueError as exc:
                raise InvalidAddress(f"Failed to parse address {value!r}") from exc
        case bytes() | bytearray():
            if len(value) != 20:
                raise InvalidAddress(f"Invalid bytes for address, expected 20 bytes, got {len(value)}")
            return bytes(value)
        case _:
            raise InvalidAddress(f"Invalid address type {type(value)}")


def to_checksum(address: bytes) -> ChecksumAddress:
    """Format a 20 byte address for the rpc layer."""
    return to_checksum_address(address)


def to_hex_quantity(value: int) -> str:
    """Format an integer as a JSON-RPC quantity."""
    return hex(value)


def from_hex_quantity(value: str | int | None) -> int | None:
    """Parse a JSON-RPC quantity, passing through ints and None."""
    if value is None or isinstance(value, int):
        return value
    return int(value, 16)


def hex_to_bytes(value: str | bytes | None) -> bytes | None:
    """Parse JSON-RPC data into bytes, passing through None."""
    if value is None:
        return None
    return bytes(HexBytes(value))


def hex_to_fixed(value: str | int | None, size: int) -> bytes | None:
    """Parse a JSON-RPC quantity or data field into a fixed width big-endian buffer."""
    if value is None:
        return None
    if isinstance(value, int):
        return value.to_bytes(size, byteorder="big")
    raw = bytes(HexBytes(value))
    if len(raw) > size:
        raise UnsupportedConversion(f"{value!r} does not fit in {size} bytes")
    return raw.rjust(size, b"\x00")
