"""Functions for querying blocks, transactions and state from the node"""

from __future__ import annotations

from typing import Any

from .connection import ConnectionHandle
from .conversions import from_hex_quantity, hex_to_bytes, hex_to_fixed, parse_address, to_checksum, to_hex_quantity
from .errors import RpcFailure


def get_block_number(connection: ConnectionHandle, timeout: float | None = None) -> int:
    """Get the number of the latest block.

    Arguments
    ---------
    connection: ConnectionHandle
        The node connection.
    timeout: float | None, optional
        The round-trip timeout in seconds. Defaults to the connection's timeout.

    Returns
    -------
    int
        The block number.
    """
    return from_hex_quantity(connection.call("eth_blockNumber", [], timeout))  # type: ignore[return-value]


def get_gas_price(connection: ConnectionHandle, timeout: float | None = None) -> bytes:
    """Get the current gas price, in wei, as a 32 byte big-endian buffer."""
    return hex_to_fixed(connection.call("eth_gasPrice", [], timeout), 32)  # type: ignore[return-value]


def _transaction_table(transaction: dict[str, Any]) -> dict[str, Any]:
    table: dict[str, Any] = {
        "hash": hex_to_fixed(transaction.get("hash"), 32),
        "input": hex_to_bytes(transaction.get("input")) or b"",
        "gas": hex_to_fixed(transaction.get("gas", 0), 32),
        "gas_price": hex_to_fixed(transaction.get("gasPrice", 0), 32),
        "value": hex_to_fixed(transaction.get("value", 0), 32),
        "nonce": hex_to_fixed(transaction.get("nonce", 0), 32),
    }
    optional = {
        "from": hex_to_fixed(transaction.get("from"), 20),
        # Contract creations have no recipient
        "to": hex_to_fixed(transaction.get("to"), 20),
        "block_hash": hex_to_fixed(transaction.get("blockHash"), 32),
        "block_number": from_hex_quantity(transaction.get("blockNumber")),
    }
    table.update({key: value for key, value in optional.items() if value is not None})
    return table


def get_transaction(connection: ConnectionHandle, transaction_hash: bytes | str, timeout: float | None = None) -> dict:
    """Get a transaction by hash.

    Arguments
    ---------
    connection: ConnectionHandle
        The node connection.
    transaction_hash: bytes | str
        The 32 byte hash, or its hex text.
    timeout: float | None, optional
        The round-trip timeout in seconds. Defaults to the connection's timeout.

    Returns
    -------
    dict
        The transaction with `input`, `gas`, `gas_price`, `value` and `nonce`, and, when known,
        `from`, `to`, `block_hash` and `block_number`.
    """
    if isinstance(transaction_hash, bytes):
        transaction_hash = "0x" + transaction_hash.hex()
    transaction = connection.call("eth_getTransactionByHash", [transaction_hash], timeout)
    if transaction is None:
        raise RpcFailure(f"Transaction {transaction_hash} not found", function_name="eth_getTransactionByHash")
    return _transaction_table(transaction)


def get_block(
    connection: ConnectionHandle,
    block: int | str = "latest",
    full_transactions: bool = False,
    timeout: float | None = None,
) -> dict:
    """Get a block by number.

    Arguments
    ---------
    connection: ConnectionHandle
        The node connection.
    block: int | str, optional
        The block number, or a tag such as "latest". Defaults to "latest".
    full_transactions: bool, optional
        If True, `transactions` holds transaction tables, otherwise transaction hashes.
    timeout: float | None, optional
        The round-trip timeout in seconds. Defaults to the connection's timeout.

    Returns
    -------
    dict
        The block header fields and its transactions.
    """
    block_id = to_hex_quantity(block) if isinstance(block, int) else block
    result = connection.call("eth_getBlockByNumber", [block_id, full_transactions], timeout)
    if result is None:
        raise RpcFailure(f"Block {block} not found", function_name="eth_getBlockByNumber")
    if full_transactions:
        transactions = [_transaction_table(transaction) for transaction in result.get("transactions", [])]
    else:
        transactions = [hex_to_fixed(transaction, 32) for transaction in result.get("transactions", [])]
    return {
        "hash": hex_to_fixed(result.get("hash"), 32),
        "number": from_hex_quantity(result.get("number")),
        "parent_hash": hex_to_fixed(result.get("parentHash"), 32),
        "uncles_hash": hex_to_fixed(result.get("sha3Uncles"), 32),
        "author": hex_to_fixed(result.get("miner"), 20),
        "state_root": hex_to_fixed(result.get("stateRoot"), 32),
        "transactions_root": hex_to_fixed(result.get("transactionsRoot"), 32),
        "receipts_root": hex_to_fixed(result.get("receiptsRoot"), 32),
        "gas_used": hex_to_fixed(result.get("gasUsed"), 32),
        "gas_limit": hex_to_fixed(result.get("gasLimit"), 32),
        "timestamp": hex_to_fixed(result.get("timestamp"), 32),
        "difficulty": hex_to_fixed(result.get("difficulty", 0), 32),
        "transactions": transactions,
    }


def get_storage_at(
    connection: ConnectionHandle,
    address: Any,
    index: int,
    block: int | str = "latest",
    timeout: float | None = None,
) -> bytes:
    """Read one 32 byte storage slot of a contract."""
    block_id = to_hex_quantity(block) if isinstance(block, int) else block
    params = [to_checksum(parse_address(address)), to_hex_quantity(index), block_id]
    return hex_to_fixed(connection.call("eth_getStorageAt", params, timeout), 32)  # type: ignore[return-value]


def send_raw_transaction(connection: ConnectionHandle, raw_transaction: bytes, timeout: float | None = None) -> bytes:
    """Submit a signed transaction and return its 32 byte hash."""
    result = connection.call("eth_sendRawTransaction", ["0x" + raw_transaction.hex()], timeout)
    return hex_to_fixed(result, 32)  # type: ignore[return-value]
