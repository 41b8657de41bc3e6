"""Canonical call tokens exchanged between the codec and the rpc layer.

Tokens form a tree: array variants own their child tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from eth_utils.address import to_checksum_address


@dataclass(frozen=True)
class Uint:
    """A 256-bit unsigned integer."""

    value: int

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return "uint256"


@dataclass(frozen=True)
class Address:
    """A 20 byte address."""

    value: bytes

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return "address"


@dataclass(frozen=True)
class Bytes:
    """A variable length byte buffer."""

    value: bytes

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return "bytes"


@dataclass(frozen=True)
class FixedBytes:
    """A byte buffer of fixed size N (`bytesN`)."""

    value: bytes

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return f"bytes{len(self.value)}"


@dataclass(frozen=True)
class Bool:
    """A boolean."""

    value: bool

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return "bool"


@dataclass(frozen=True)
class Array:
    """An unbounded array of tokens sharing one element type."""

    tokens: tuple[Token, ...]
    element_type: str
    """The ABI type of the elements, kept so that an empty array can still be encoded."""

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return f"{self.element_type}[]"


@dataclass(frozen=True)
class FixedArray:
    """A fixed length array of tokens sharing one element type."""

    tokens: tuple[Token, ...]
    element_type: str

    @property
    def abi_type(self) -> str:
        """The ABI type used to encode this token."""
        return f"{self.element_type}[{len(self.tokens)}]"


# The following kinds come back from the wire for abis declaring them,
# but are never converted into dynamic values.


@dataclass(frozen=True)
class String:
    """A utf-8 string."""

    value: str


@dataclass(frozen=True)
class Int:
    """A signed integer."""

    value: int


@dataclass(frozen=True)
class Tuple:
    """A struct of heterogeneous tokens."""

    tokens: tuple[Token, ...] = field(default_factory=tuple)


Token = Union[Uint, Address, Bytes, FixedBytes, Bool, Array, FixedArray, String, Int, Tuple]


def token_to_abi_value(token: Token) -> Any:
    """Convert a token into the python value expected by `eth_abi.encode`."""
    match token:
        case Uint() | Bool() | Int() | String():
            return token.value
        case Address():
            return to_checksum_address(token.value)
        case Bytes() | FixedBytes():
            return token.value
        case Array() | FixedArray():
            return [token_to_abi_value(child) for child in token.tokens]
        case Tuple():
            return tuple(token_to_abi_value(child) for child in token.tokens)
        case _:
            raise TypeError(f"Unknown token {token!r}")
