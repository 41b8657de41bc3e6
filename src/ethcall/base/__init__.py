"""Connections, contract bindings and blocking contract calls via web3"""

# Import errors first, every other module depends on them
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
)
from .conversions import bytes_to_uint256, parse_address, strip_hex_prefix, to_hex_quantity, uint256_to_bytes
from .auth import Caller, ExternalAccount, SigningKey, caller_from_value
from .options import CallOptions
from .registry import SharedRegistry
from .connection import ConnectionHandle, ConnectionState, TransportKind, connect_node
from .contract import ContractHandle, SharedContract, bind_contract
from .receipts import EventLog, TransactionReceipt, event_log_from_rpc, receipt_from_rpc
from .transactions import (
    async_wait_for_confirmations,
    call_read,
    call_read_batch,
    call_write,
    estimate_gas,
    wait_for_confirmations,
)
from .events import EventWaiter, wait_for_event
