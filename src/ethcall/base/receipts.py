"""Transaction receipts and event logs returned by the node."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .conversions import from_hex_quantity, hex_to_bytes, hex_to_fixed, uint256_to_bytes
from .errors import RpcFailure


@dataclass(frozen=True)
class EventLog:
    """A log emitted by a contract."""

    data: bytes
    """The non-indexed event data."""
    topics: list[bytes] = field(default_factory=list)
    """The 32 byte topics; topic 0 is the event signature hash."""
    address: bytes | None = None
    """The 20 byte address of the emitting contract."""
    block_hash: bytes | None = None
    block_number: int | None = None
    transaction_hash: bytes | None = None
    transaction_index: int | None = None
    log_index: int | None = None
    removed: bool | None = None
    """True when the log was dropped by a chain reorganization."""

    def as_table(self) -> dict[str, Any]:
        """The log as a table, omitting unset fields."""
        table: dict[str, Any] = {"data": self.data, "topics": list(self.topics)}
        optional = {
            "address": self.address,
            "block_hash": self.block_hash,
            "block_number": self.block_number,
            "transaction_hash": self.transaction_hash,
            "transaction_index": self.transaction_index,
            "log_index": self.log_index,
            "removed": self.removed,
        }
        table.update({key: value for key, value in optional.items() if value is not None})
        return table


@dataclass(frozen=True)
class TransactionReceipt:
    """The receipt of a mined transaction."""

    transaction_hash: bytes
    """The 32 byte transaction hash."""
    transaction_index: int
    block_hash: bytes | None = None
    block_number: int | None = None
    gas_used: bytes | None = None
    """The gas used as a 32 byte big-endian buffer."""
    status: int | None = None
    """1 on success, 0 on revert. Absent on pre-byzantium chains."""
    logs: list[EventLog] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """Whether the transaction did not revert."""
        return self.status != 0

    def as_table(self) -> dict[str, Any]:
        """The receipt as a table, omitting unset fields."""
        table: dict[str, Any] = {
            "transaction_hash": self.transaction_hash,
            "transaction_index": self.transaction_index,
            "logs": [log.as_table() for log in self.logs],
        }
        optional = {
            "block_hash": self.block_hash,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
            "status": self.status,
        }
        table.update({key: value for key, value in optional.items() if value is not None})
        return table

    def logs_for_topic(self, topic: bytes) -> list[EventLog]:
        """The logs whose topic 0 matches an event signature hash."""
        return [log for log in self.logs if log.topics and log.topics[0] == topic]


def event_log_from_rpc(log: Mapping[str, Any]) -> EventLog:
    """Build an `EventLog` from a JSON-RPC log object.

    Arguments
    ---------
    log: Mapping[str, Any]
        A log from `eth_getTransactionReceipt` or a `logs` subscription, raw or formatted by web3.
        Quantities may be hex strings or ints, data fields hex strings or bytes.

    Returns
    -------
    EventLog
        The parsed log.
    """
    if not isinstance(log, Mapping):
        raise RpcFailure(f"Expected a log object, got {log!r}")
    removed = log.get("removed")
    return EventLog(
        data=hex_to_bytes(log.get("data")) or b"",
        topics=[hex_to_fixed(topic, 32) for topic in log.get("topics") or []],  # type: ignore[misc]
        address=hex_to_fixed(log.get("address"), 20),
        block_hash=hex_to_fixed(log.get("blockHash"), 32),
        block_number=from_hex_quantity(log.get("blockNumber")),
        transaction_hash=hex_to_fixed(log.get("transactionHash"), 32),
        transaction_index=from_hex_quantity(log.get("transactionIndex")),
        log_index=from_hex_quantity(log.get("logIndex")),
        removed=None if removed is None else bool(removed),
    )


def receipt_from_rpc(receipt: dict[str, Any]) -> TransactionReceipt:
    """Build a `TransactionReceipt` from a JSON-RPC receipt object."""
    transaction_hash = hex_to_fixed(receipt.get("transactionHash"), 32)
    transaction_index = from_hex_quantity(receipt.get("transactionIndex"))
    if transaction_hash is None or transaction_index is None:
        raise RpcFailure(f"Malformed transaction receipt: {receipt!r}")
    gas_used = from_hex_quantity(receipt.get("gasUsed"))
    logs: Sequence[dict[str, Any]] = receipt.get("logs") or []
    return TransactionReceipt(
        transaction_hash=transaction_hash,
        transaction_index=transaction_index,
        block_hash=hex_to_fixed(receipt.get("blockHash"), 32),
        block_number=from_hex_quantity(receipt.get("blockNumber")),
        gas_used=None if gas_used is None else uint256_to_bytes(gas_used),
        status=from_hex_quantity(receipt.get("status")),
        logs=[event_log_from_rpc(log) for log in logs],
    )
