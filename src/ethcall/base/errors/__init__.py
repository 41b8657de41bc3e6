"""Error taxonomy and contract error parsing."""

from .errors import (
    ArityMismatch,
    BatchSubmissionFailed,
    ConnectionFailed,
    EthCallError,
    EventNotFound,
    InvalidAbi,
    InvalidAddress,
    MalformedAbi,
    MethodNotFound,
    RpcFailure,
    TimedOut,
    TypeMismatch,
    UnsupportedConversion,
    UnsupportedToken,
    UnsupportedTransport,
    decode_error_selector_for_contract,
    describe_rpc_error,
)
from .types import ABIError
