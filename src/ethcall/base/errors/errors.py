"""Error handling for contract calls."""

from __future__ import annotations

from typing import Any, Sequence

from eth_utils.conversions import to_hex
from eth_utils.crypto import keccak

from .types import ABIError


class EthCallError(Exception):
    """Base class for every error raised by ethcall."""


class MalformedAbi(EthCallError):
    """The interface document is not an array of entries."""


class MethodNotFound(EthCallError):
    """No method entry in the interface document matches the requested name."""


class EventNotFound(EthCallError):
    """No event entry in the interface document matches the requested name."""


class ArityMismatch(EthCallError):
    """The number of arguments does not match the number of declared inputs."""


class TypeMismatch(EthCallError):
    """A value's runtime shape does not fit the expected ABI type."""


class UnsupportedConversion(EthCallError):
    """A value cannot be converted into a token of the expected ABI type."""


class UnsupportedToken(EthCallError):
    """A token kind that is not converted back into a dynamic value."""


class InvalidAddress(EthCallError):
    """A value could not be parsed as a 20 byte address."""


class InvalidAbi(EthCallError):
    """The interface document could not be parsed or bound to a contract."""


class ConnectionFailed(EthCallError):
    """Neither transport could reach the node, or the connection was already released."""


class UnsupportedTransport(EthCallError):
    """The operation requires a streaming (subscribable) connection."""


class TimedOut(EthCallError):
    """A network round-trip did not complete before its timeout."""


class RpcFailure(EthCallError):
    """Custom rpc failure wrapper that contains additional information on the function call"""

    # We'd like to pass in these optional kwargs to this exception
    # pylint: disable=too-many-arguments
    def __init__(
        self,
        *args,
        # Explicitly passing these arguments as kwargs to allow for multiple `args` to be passed in
        # similar for other types of exceptions
        orig_exception: Exception | BaseException | None = None,
        function_name: str | None = None,
        fn_args: Any = None,
        block_number: int | None = None,
        rpc_error: dict[str, Any] | None = None,
        index: int | None = None,
        partial_results: Sequence[Any] | None = None,
    ):
        super().__init__(*args)
        self.orig_exception = orig_exception
        self.function_name = function_name
        self.fn_args = fn_args
        self.block_number = block_number
        self.rpc_error = rpc_error
        # Only set for batched calls
        self.index = index
        self.partial_results = list(partial_results) if partial_results is not None else None


class BatchSubmissionFailed(EthCallError):
    """The batch as a whole could not be submitted; no individual result exists."""

    def __init__(self, *args, orig_exception: Exception | BaseException | None = None):
        super().__init__(*args)
        self.orig_exception = orig_exception


def decode_error_selector_for_contract(error_selector: str, abi: Sequence[dict[str, Any]]) -> str:
    """Decode the error selector for a contract,

    Arguments
    ---------
    error_selector: str
        A 4 byte hex string obtained from a keccak256 has of the error signature, i.e.
        'InvalidToken()' would yield '0xc1ab6dc1'.
    abi: Sequence[dict[str, Any]]
        The parsed interface document of the contract.

    Returns
    -------
    str
       The name of the error. If the error is not found, returns UnknownError.
    """
    if not abi:
        raise InvalidAbi("Contract does not have an abi, cannot decode the error selector.")

    errors = [
        ABIError(name=err.get("name"), inputs=err.get("inputs", []), type="error")  # type: ignore
        for err in abi
        if isinstance(err, dict) and err.get("type") == "error"
    ]

    error_name = "UnknownError"

    for error in errors:
        error_inputs = error.get("inputs")
        # build a list of argument types like 'uint256,bytes,bool'
        input_types_csv = ",".join([input_type.get("type") or "" for input_type in error_inputs])
        # create an error signature, i.e. CustomError(uint256,bool)
        error_signature = f"{error.get('name')}({input_types_csv})"
        decoded_error_selector = str(to_hex(primitive=keccak(text=error_signature)))[:10]
        if decoded_error_selector == error_selector.lower():
            error_name = error.get("name")
            break

    return error_name


def describe_rpc_error(rpc_error: dict[str, Any], abi: Sequence[dict[str, Any]] | None = None) -> str:
    """Build a readable message out of a JSON-RPC error object.

    Revert data that starts with a selector declared as a custom error in the abi gets
    the error name appended.
    """
    code = rpc_error.get("code")
    message = rpc_error.get("message") or "unknown error"
    detail = f"code {code}: {message}" if code is not None else str(message)
    data = rpc_error.get("data")
    if isinstance(data, dict):
        data = data.get("data")
    if abi and isinstance(data, str) and data.startswith("0x") and len(data) >= 10:
        error_name = decode_error_selector_for_contract(data[:10], abi)
        if error_name != "UnknownError":
            detail += f" ({error_name})"
    return detail
