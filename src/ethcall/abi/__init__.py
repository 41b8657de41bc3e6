"""ABI type lookups, the token codec and event signature hashing."""

from .abi_type import AbiType, ArrayDimension, parse_abi_type
from .catalog import get_event_signature, get_parameter_types, get_return_types, parse_abi_json
from .codec import (
    decode_call_output,
    decode_tokens,
    encode_call_data,
    encode_token,
    encode_tokens,
    tokens_from_abi_values,
)
from .event_hash import hash_event, hash_event_signature
from .load_abis import load_abi_from_file, load_all_abis
from .tokens import Address, Array, Bool, Bytes, FixedArray, FixedBytes, Int, String, Token, Tuple, Uint
