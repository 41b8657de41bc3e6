"""Parsing of ABI type strings into a base type and array dimensions."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ethcall.base.errors import UnsupportedConversion

_BASE_TYPE_PATTERN = re.compile(r"^([a-z]+[0-9]*)((?:\[[0-9]*\])*)$")
_DIMENSION_PATTERN = re.compile(r"\[([0-9]*)\]")

# Fixed size byte types, bytes1 .. bytes32
FIXED_BYTES_TYPES = frozenset(f"bytes{size}" for size in range(1, 33))
SUPPORTED_BASE_TYPES = frozenset({"address", "uint256", "bytes", "bool"}) | FIXED_BYTES_TYPES


@dataclass(frozen=True)
class ArrayDimension:
    """One array suffix, either unbounded (`[]`) or fixed size (`[N]`)."""

    size: int | None = None
    """The fixed size, or None for an unbounded array."""

    @property
    def is_fixed(self) -> bool:
        """Whether the dimension has a fixed size."""
        return self.size is not None

    def __str__(self) -> str:
        return "[]" if self.size is None else f"[{self.size}]"


@dataclass(frozen=True)
class AbiType:
    """A base type name plus zero or more array dimensions.

    Dimensions are listed left-to-right, innermost first, so `uint256[2][]` is an
    unbounded array of fixed arrays of two `uint256`.
    """

    base: str
    dimensions: tuple[ArrayDimension, ...] = ()

    @property
    def is_array(self) -> bool:
        """Whether the type has at least one array suffix."""
        return len(self.dimensions) > 0

    @property
    def outer_dimension(self) -> ArrayDimension:
        """The outermost array suffix."""
        if not self.dimensions:
            raise ValueError(f"{self} is not an array type")
        return self.dimensions[-1]

    def element_type(self) -> AbiType:
        """The type with its outermost array suffix stripped."""
        if not self.dimensions:
            raise ValueError(f"{self} is not an array type")
        return AbiType(self.base, self.dimensions[:-1])

    @property
    def fixed_bytes_size(self) -> int | None:
        """The size of a `bytesN` base type, None for any other base type."""
        if self.base in FIXED_BYTES_TYPES:
            return int(self.base[len("bytes") :])
        return None

    def __str__(self) -> str:
        return self.base + "".join(str(dimension) for dimension in self.dimensions)


def parse_abi_type(type_string: str) -> AbiType:
    """Parse an ABI type string such as `address`, `uint256[]` or `bytes32[4][]`.

    Arguments
    ---------
    type_string: str
        The type string as declared in the interface document.

    Returns
    -------
    AbiType
        The parsed type.
    """
    match = _BASE_TYPE_PATTERN.match(type_string.strip())
    if match is None:
        raise UnsupportedConversion(f"Malformed ABI type {type_string!r}")
    base, suffixes = match.groups()
    if base not in SUPPORTED_BASE_TYPES:
        raise UnsupportedConversion(f"Unsupported ABI base type {base!r} in {type_string!r}")
    dimensions = tuple(
        ArrayDimension(int(size) if size else None) for size in _DIMENSION_PATTERN.findall(suffixes)
    )
    return AbiType(base, dimensions)
