"""Type-directed conversion between dynamic python values and call tokens.

Dynamic values are the plain python shapes a caller hands in: `str`, `bool`, `int`,
`bytes`, and `list`/`tuple` sequences of those. Decoded values use the canonical
fixed-width byte representation: 32 byte buffers for integers, 20 byte buffers for addresses.

.. note::
    Bytes-array packing convention: when the expected type is an array of `bytes`
    (e.g. `bytes[]`), the value is NOT encoded as an ABI array. Each element is read as a
    256-bit unsigned integer, serialized to a 32 byte big-endian chunk, and all chunks are
    concatenated into a single `Bytes` token. This lets packed byte payloads be built from a
    sequence of scalar values. It only goes one way; decoding yields the packed buffer.
"""

from __future__ import annotations

from typing import Any, Sequence

import eth_abi
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils.abi import function_signature_to_4byte_selector
from eth_utils.address import to_canonical_address

from ethcall.base.conversions import (
    UINT256_MAX,
    bytes_to_uint256,
    parse_address,
    parse_uint256_text,
    strip_hex_prefix,
    uint256_to_bytes,
)
from ethcall.base.errors import ArityMismatch, TypeMismatch, UnsupportedConversion, UnsupportedToken

from .abi_type import AbiType, parse_abi_type
from .tokens import (
    Address,
    Array,
    Bool,
    Bytes,
    FixedArray,
    FixedBytes,
    Int,
    String,
    Token,
    Tuple,
    Uint,
    token_to_abi_value,
)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _to_uint256(value: Any) -> int:
    """Read a scalar dynamic value as a 256-bit unsigned integer."""
    match value:
        case bool():
            raise TypeMismatch("Found a Bool argument where an integer was expected")
        case int():
            if value < 0 or value > UINT256_MAX:
                raise UnsupportedConversion(f"{value=} does not fit in 256 unsigned bits")
            return value
        case str():
            return parse_uint256_text(value)
        case bytes() | bytearray():
            return bytes_to_uint256(bytes(value))
        case _:
            raise UnsupportedConversion(f"Cannot convert {type(value).__name__} into uint256")


def _encode_array(value: Any, expected: AbiType) -> Token:
    if not _is_sequence(value):
        raise TypeMismatch(f"The ABI expected an array of type {expected}, got {type(value).__name__}")
    if expected.base == "bytes":
        # Bytes-array packing convention, see module docstring
        packed = b"".join(uint256_to_bytes(_to_uint256(element)) for element in value)
        return Bytes(packed)
    element_type = expected.element_type()
    sub_tokens = tuple(encode_token(element, element_type) for element in value)
    dimension = expected.outer_dimension
    if dimension.is_fixed:
        if len(sub_tokens) != dimension.size:
            raise TypeMismatch(f"Fixed array {expected} expects {dimension.size} elements, got {len(sub_tokens)}")
        return FixedArray(sub_tokens, str(element_type))
    return Array(sub_tokens, str(element_type))


def _encode_text(value: str, expected: AbiType) -> Token:
    if expected.base == "address":
        return Address(parse_address(value))
    if expected.base == "uint256":
        return Uint(parse_uint256_text(value))
    if expected.base == "bytes" or expected.fixed_bytes_size is not None:
        try:
            raw = bytes.fromhex(strip_hex_prefix(value))
        except ValueError as exc:
            raise UnsupportedConversion(f"Failed to parse {value!r} as hex bytes") from exc
        return _encode_raw_bytes(raw, expected)
    raise TypeMismatch(f"Found a String argument for ABI type {expected}")


def _encode_raw_bytes(value: bytes, expected: AbiType) -> Token:
    if expected.base == "uint256":
        return Uint(bytes_to_uint256(value))
    if expected.base == "bytes":
        return Bytes(value)
    size = expected.fixed_bytes_size
    if size is not None:
        if len(value) != size:
            raise TypeMismatch(f"ABI type {expected} expects {size} bytes, got {len(value)}")
        return FixedBytes(value)
    raise TypeMismatch(f"Found a Bytes argument for ABI type {expected}")


def encode_token(value: Any, expected_type: str | AbiType) -> Token:
    """Encode one dynamic value into a token of the expected ABI type.

    Arguments
    ---------
    value: Any
        The dynamic value; text, bool, int, bytes, or a list/tuple of those.
    expected_type: str | AbiType
        The ABI type the contract declares for this argument.

    Returns
    -------
    Token
        The encoded token.
    """
    expected = parse_abi_type(expected_type) if isinstance(expected_type, str) else expected_type
    if expected.is_array:
        return _encode_array(value, expected)
    match value:
        case list() | tuple():
            raise TypeMismatch(f"Input was a sequence but the ABI expected {expected}")
        case str():
            return _encode_text(value, expected)
        # bool is a subclass of int, so it must be matched first
        case bool():
            if expected.base != "bool":
                raise TypeMismatch(f"Found a Bool argument for ABI type {expected}")
            return Bool(value)
        case int():
            if expected.base != "uint256":
                raise TypeMismatch(f"Found an Int argument for ABI type {expected}")
            return Uint(_to_uint256(value))
        case bytes() | bytearray() | memoryview():
            return _encode_raw_bytes(bytes(value), expected)
        case _:
            raise UnsupportedConversion(f"Cannot convert {type(value).__name__} into {expected}")


def encode_tokens(value: Any, expected_types: Sequence[str | AbiType]) -> list[Token]:
    """Encode a sequence of call arguments positionally.

    Arguments
    ---------
    value: Any
        A list/tuple with exactly one dynamic value per declared input.
    expected_types: Sequence[str | AbiType]
        The declared input types, in order.

    Returns
    -------
    list[Token]
        One token per argument.
    """
    if not _is_sequence(value):
        raise ArityMismatch(f"Arguments must be a sequence, got {type(value).__name__}")
    if len(value) != len(expected_types):
        raise ArityMismatch(
            f"Invalid number of inputs, {len(expected_types)} expected, got {len(value)}; please check the abi"
        )
    return [encode_token(arg, expected_type) for arg, expected_type in zip(value, expected_types)]


def decode_tokens(tokens: Sequence[Token]) -> list[Any]:
    """Decode tokens into dynamic values.

    Integers become 32 byte buffers, addresses 20 byte buffers, byte types are kept as is,
    and both array variants become lists.

    Arguments
    ---------
    tokens: Sequence[Token]
        The tokens, e.g. the outputs of a call.

    Returns
    -------
    list[Any]
        One dynamic value per token.
    """
    values: list[Any] = []
    for token in tokens:
        match token:
            case Uint():
                values.append(uint256_to_bytes(token.value))
            case Address():
                values.append(bytes(token.value))
            case Bytes() | FixedBytes():
                values.append(bytes(token.value))
            case Array() | FixedArray():
                values.append(decode_tokens(token.tokens))
            case _:
                raise UnsupportedToken(f"Found a not implemented token {type(token).__name__}")
    return values


def _split_tuple_types(type_string: str) -> list[str]:
    """Split `(a,(b,c),d)` into its top level component types."""
    inner = type_string[1:-1]
    components: list[str] = []
    depth = 0
    current = ""
    for char in inner:
        if char == "," and depth == 0:
            components.append(current)
            current = ""
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        current += char
    if current:
        components.append(current)
    return components


def _token_from_abi_value(type_string: str, value: Any) -> Token:
    if type_string.endswith("]"):
        element_type, _, size = type_string[:-1].rpartition("[")
        children = tuple(_token_from_abi_value(element_type, child) for child in value)
        if size:
            return FixedArray(children, element_type)
        return Array(children, element_type)
    if type_string.startswith("("):
        component_types = _split_tuple_types(type_string)
        return Tuple(tuple(_token_from_abi_value(t, v) for t, v in zip(component_types, value)))
    if type_string == "address":
        return Address(to_canonical_address(value))
    if type_string.startswith("uint"):
        return Uint(value)
    if type_string.startswith("int"):
        return Int(value)
    if type_string == "bool":
        return Bool(value)
    if type_string == "bytes":
        return Bytes(bytes(value))
    if type_string.startswith("bytes"):
        return FixedBytes(bytes(value))
    if type_string == "string":
        return String(value)
    raise UnsupportedConversion(f"Unknown ABI type {type_string!r} in call output")


def tokens_from_abi_values(types: Sequence[str], values: Sequence[Any]) -> list[Token]:
    """Convert python values produced by `eth_abi.decode` into tokens."""
    if len(types) != len(values):
        raise ArityMismatch(f"{len(types)=} must equal {len(values)=}")
    return [_token_from_abi_value(type_string, value) for type_string, value in zip(types, values)]


def encode_call_data(method_name: str, input_types: Sequence[str], tokens: Sequence[Token]) -> bytes:
    """Build the call data of a method call: the 4 byte selector followed by the encoded tokens.

    The selector is computed from the declared input types, while each token is encoded with
    its own ABI type, so the bytes-array packing convention sends a single `bytes` payload.
    """
    selector = function_signature_to_4byte_selector(f"{method_name}({','.join(input_types)})")
    try:
        encoded = eth_abi.encode(
            [token.abi_type for token in tokens],  # type: ignore[union-attr]
            [token_to_abi_value(token) for token in tokens],
        )
    except EncodingError as exc:
        raise UnsupportedConversion(f"Failed to encode input for {method_name}: {exc}") from exc
    return selector + encoded


def decode_call_output(output_types: Sequence[str], data: bytes) -> list[Token]:
    """Decode the return data of a call into tokens."""
    if not output_types:
        return []
    try:
        values = eth_abi.decode(list(output_types), data)
    except (DecodingError, ValueError) as exc:
        raise UnsupportedConversion(f"Failed to decode call output as {list(output_types)}: {exc}") from exc
    return tokens_from_abi_values(output_types, values)
