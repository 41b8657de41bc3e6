"""Blocking contract calls: reads, batched reads, gas estimates and confirmed writes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from ethcall.abi import decode_call_output, decode_tokens, encode_call_data, encode_tokens
from ethcall.abi.tokens import Token
from ethcall.eth_config import get_default_confirmation_poll_interval, get_default_confirmations

from .auth import Caller, ExternalAccount, SigningKey, caller_from_value
from .connection import ConnectionHandle, response_result, with_timeout
from .contract import ContractHandle
from .conversions import from_hex_quantity, parse_address, to_checksum, to_hex_quantity, uint256_to_bytes
from .errors import ArityMismatch, InvalidAddress, RpcFailure, UnsupportedConversion
from .options import CallOptions
from .receipts import TransactionReceipt, receipt_from_rpc

def _block_identifier(block: int | str | None) -> str:
    if block is None:
        return "latest"
    if isinstance(block, int):
        return to_hex_quantity(block)
    return block


def _build_transaction(
    contract: ContractHandle,
    method: str,
    args: Any,
    from_address: Any = None,
    options: CallOptions | None = None,
) -> dict[str, Any]:
    """Encode a method call into a JSON-RPC transaction object."""
    input_types = contract.parameter_types(method)
    tokens = encode_tokens(args, input_types)
    data = encode_call_data(method, input_types, tokens)
    transaction: dict[str, Any] = {"to": contract.checksum_address, "data": "0x" + data.hex()}
    # An empty caller means no caller
    if from_address is not None and from_address != "":
        transaction["from"] = to_checksum(parse_address(from_address))
    if options is not None:
        transaction = options.apply(transaction)
    return transaction


def _decode_result(method: str, output_types: Sequence[str], result: Any) -> list[Token]:
    if not isinstance(result, str):
        raise RpcFailure(f"Unexpected result for {method}: {result!r}", function_name=method)
    try:
        return decode_call_output(output_types, bytes.fromhex(result[2:] if result.startswith("0x") else result))
    except (UnsupportedConversion, ValueError) as exc:
        raise RpcFailure(f"Failed to decode the output of {method}: {exc}", function_name=method) from exc


def _with_call_context(err: RpcFailure, method: str, args: Any, block: Any, **kwargs) -> RpcFailure:
    return RpcFailure(
        *err.args,
        orig_exception=err.orig_exception or err,
        function_name=method,
        fn_args=args,
        block_number=block if isinstance(block, int) else None,
        rpc_error=err.rpc_error,
        **kwargs,
    )


def call_read(
    contract: ContractHandle,
    method: str,
    args: Any,
    from_address: Any = None,
    block: int | str | None = None,
    options: CallOptions | None = None,
    timeout: float | None = None,
) -> list[Any]:
    """Call a read-only method and return its decoded outputs.

    Arguments
    ---------
    contract: ContractHandle
        The bound contract.
    method: str
        The method name.
    args: Any
        The sequence of dynamic argument values, one per declared input.
    from_address: Any, optional
        The caller address, as hex text or 20 bytes.
    block: int | str | None, optional
        The block to read at. Defaults to "latest".
    options: CallOptions | None, optional
        Gas, gas price, value and nonce overrides.
    timeout: float | None, optional
        The round-trip timeout in seconds. Defaults to the connection's timeout.

    Returns
    -------
    list[Any]
        One decoded value per declared output: 32 byte buffers for integers, 20 byte
        buffers for addresses, lists for arrays.
    """
    # pylint: disable=too-many-arguments
    connection = contract.connection
    transaction = _build_transaction(contract, method, args, from_address, options)
    output_types = contract.return_types(method)
    if timeout is None:
        timeout = connection.timeout
    try:
        result = connection.run(
            with_timeout(
                connection.request("eth_call", [transaction, _block_identifier(block)], abi=contract.abi),
                timeout,
                f"Call to {method}",
            )
        )
        tokens = _decode_result(method, output_types, result)
    except RpcFailure as err:
        logging.error("eth_call failed: %s\nfunction name: %s\nfunction args: %s", err, method, args)
        raise _with_call_context(err, method, args, block) from err
    return decode_tokens(tokens)


def call_read_batch(
    contract: ContractHandle,
    method: str,
    args_sequence: Sequence[Any],
    from_address: Any = None,
    block: int | str | None = None,
    options: CallOptions | None = None,
    timeout: float | None = None,
) -> list[list[Any]]:
    """Call a read-only method once per argument set, in a single round-trip.

    Every argument set is encoded before anything is sent. The batch is submitted as a
    whole under one timeout; a failed submission raises `BatchSubmissionFailed` and yields
    no results. Results are then decoded in input order, and the first failing element
    raises `RpcFailure` with its `index` and the results decoded before it in
    `partial_results`.

    Arguments
    ---------
    contract: ContractHandle
        The bound contract.
    method: str
        The method name.
    args_sequence: Sequence[Any]
        One argument sequence per call.
    from_address: Any, optional
        The caller address used for every call.
    block: int | str | None, optional
        The block to read at. Defaults to "latest".
    options: CallOptions | None, optional
        Overrides applied to every call.
    timeout: float | None, optional
        The timeout of the whole round-trip. Defaults to the connection's timeout.

    Returns
    -------
    list[list[Any]]
        The decoded outputs of each call, in input order.
    """
    # pylint: disable=too-many-arguments
    if not isinstance(args_sequence, (list, tuple)):
        raise ArityMismatch(f"Batch arguments must be a sequence of argument sets, got {type(args_sequence).__name__}")
    connection = contract.connection
    block_id = _block_identifier(block)
    requests = [
        ("eth_call", [_build_transaction(contract, method, args, from_address, options), block_id])
        for args in args_sequence
    ]
    if not requests:
        return []
    output_types = contract.return_types(method)
    if timeout is None:
        timeout = connection.timeout
    responses = connection.run(with_timeout(connection.batch_request(requests), timeout, f"Batch of {method} calls"))
    results: list[list[Any]] = []
    for index, response in enumerate(responses):
        try:
            tokens = _decode_result(method, output_types, response_result("eth_call", response, contract.abi))
        except RpcFailure as err:
            logging.error(
                "eth_call %s of batch failed: %s\nfunction name: %s\nfunction args: %s",
                index,
                err,
                method,
                args_sequence[index],
            )
            raise _with_call_context(
                err, method, args_sequence[index], block, index=index, partial_results=results
            ) from err
        results.append(decode_tokens(tokens))
    return results


def estimate_gas(
    contract: ContractHandle,
    method: str,
    args: Any,
    from_address: Any,
    options: CallOptions | None = None,
    timeout: float | None = None,
) -> bytes:
    """Estimate the gas a method call would use.

    Arguments
    ---------
    contract: ContractHandle
        The bound contract.
    method: str
        The method name.
    args: Any
        The sequence of dynamic argument values.
    from_address: Any
        The caller address. Required.
    options: CallOptions | None, optional
        Gas price, value and nonce overrides.
    timeout: float | None, optional
        The round-trip timeout in seconds. Defaults to the connection's timeout.

    Returns
    -------
    bytes
        The estimate as a 32 byte big-endian buffer.
    """
    # pylint: disable=too-many-arguments
    if from_address is None or from_address == "":
        raise InvalidAddress("Estimating gas requires a caller address")
    connection = contract.connection
    transaction = _build_transaction(contract, method, args, from_address, options)
    if timeout is None:
        timeout = connection.timeout
    try:
        result = connection.run(
            with_timeout(
                connection.request("eth_estimateGas", [transaction], abi=contract.abi),
                timeout,
                f"Gas estimate of {method}",
            )
        )
    except RpcFailure as err:
        logging.error("eth_estimateGas failed: %s\nfunction name: %s\nfunction args: %s", err, method, args)
        raise _with_call_context(err, method, args, None) from err
    return uint256_to_bytes(from_hex_quantity(result))  # type: ignore[arg-type]


async def _send_signed(
    connection: ConnectionHandle, transaction: dict[str, Any], key: SigningKey, abi: Sequence[dict[str, Any]]
) -> str:
    sender = to_checksum(key.address)
    transaction = {**transaction, "from": sender}
    if "nonce" not in transaction:
        transaction["nonce"] = await connection.request("eth_getTransactionCount", [sender, "pending"])
    if "gas" not in transaction:
        transaction["gas"] = await connection.request("eth_estimateGas", [transaction], abi=abi)
    if "gasPrice" not in transaction:
        transaction["gasPrice"] = await connection.request("eth_gasPrice", [])
    chain_id = await connection.request("eth_chainId", [])
    unsigned = {
        "to": transaction["to"],
        "data": transaction["data"],
        "value": from_hex_quantity(transaction.get("value", 0)),
        "nonce": from_hex_quantity(transaction["nonce"]),
        "gas": from_hex_quantity(transaction["gas"]),
        "gasPrice": from_hex_quantity(transaction["gasPrice"]),
        "chainId": from_hex_quantity(chain_id),
    }
    raw_transaction = key.sign_transaction(unsigned)
    key.scrub()
    return await connection.request("eth_sendRawTransaction", ["0x" + raw_transaction.hex()], abi=abi)


async def _send(
    connection: ConnectionHandle, transaction: dict[str, Any], caller: Caller, abi: Sequence[dict[str, Any]]
) -> str:
    match caller:
        case SigningKey():
            return await _send_signed(connection, transaction, caller, abi)
        case ExternalAccount():
            transaction = {**transaction, "from": caller.checksum_address}
            return await connection.request("eth_sendTransaction", [transaction], abi=abi)
    raise TypeError(f"Unknown caller {caller!r}")


async def async_wait_for_confirmations(
    connection: ConnectionHandle,
    transaction_hash: str,
    confirmations: int | None = None,
    poll_interval: float | None = None,
) -> TransactionReceipt:
    """Poll until a transaction is mined and buried under enough blocks.

    There is no timeout; a write can wait for confirmations for as long as it takes.

    Arguments
    ---------
    connection: ConnectionHandle
        The connection the transaction was sent over.
    transaction_hash: str
        The hex transaction hash.
    confirmations: int | None, optional
        The number of blocks required on top of the transaction's block. Zero returns as
        soon as the transaction is mined. Defaults to the `CONFIRMATIONS` env var, or 12.
    poll_interval: float | None, optional
        The time in seconds between polls. Defaults to the `CONFIRMATION_POLL_INTERVAL` env var, or 1.

    Returns
    -------
    TransactionReceipt
        The receipt fetched once the confirmations are reached.
    """
    if confirmations is None:
        confirmations = get_default_confirmations()
    if poll_interval is None:
        poll_interval = get_default_confirmation_poll_interval()
    while True:
        receipt = await connection.request("eth_getTransactionReceipt", [transaction_hash])
        receipt_block = None if receipt is None else from_hex_quantity(receipt.get("blockNumber"))
        if receipt_block is not None:
            current_block = from_hex_quantity(await connection.request("eth_blockNumber", []))
            if current_block is not None and current_block >= receipt_block + confirmations:
                return receipt_from_rpc(receipt)
            logging.debug(
                "Transaction %s mined in block %s, at block %s, waiting for %s confirmations",
                transaction_hash,
                receipt_block,
                current_block,
                confirmations,
            )
        await asyncio.sleep(poll_interval)


def wait_for_confirmations(
    connection: ConnectionHandle,
    transaction_hash: str,
    confirmations: int | None = None,
    poll_interval: float | None = None,
) -> TransactionReceipt:
    """Blocking version of `async_wait_for_confirmations`."""
    return connection.run(async_wait_for_confirmations(connection, transaction_hash, confirmations, poll_interval))


def call_write(
    contract: ContractHandle,
    method: str,
    args: Any,
    caller: Any,
    confirmations: int | None = None,
    options: CallOptions | None = None,
    poll_interval: float | None = None,
) -> TransactionReceipt:
    """Send a state-changing method call and wait for it to be confirmed.

    Arguments
    ---------
    contract: ContractHandle
        The bound contract.
    method: str
        The method name.
    args: Any
        The sequence of dynamic argument values.
    caller: Any
        A `SigningKey`, or an `ExternalAccount` unlocked on the node, or a value accepted by
        `caller_from_value`. A signing key is scrubbed as soon as the transaction is signed,
        and also when sending fails.
    confirmations: int | None, optional
        The number of confirmations to wait for. Defaults to the `CONFIRMATIONS` env var, or 12.
    options: CallOptions | None, optional
        Gas, gas price, value and nonce overrides.
    poll_interval: float | None, optional
        The time in seconds between confirmation polls. Defaults to the `CONFIRMATION_POLL_INTERVAL` env var, or 1.

    Returns
    -------
    TransactionReceipt
        The receipt of the confirmed transaction.
    """
    # pylint: disable=too-many-arguments
    caller = caller_from_value(caller)
    try:
        connection = contract.connection
        transaction = _build_transaction(contract, method, args, None, options)
        try:
            transaction_hash = connection.run(_send(connection, transaction, caller, contract.abi))
        except RpcFailure as err:
            logging.error("Transaction failed: %s\nfunction name: %s\nfunction args: %s", err, method, args)
            raise _with_call_context(err, method, args, None) from err
    finally:
        if isinstance(caller, SigningKey):
            caller.scrub()
    logging.info("Sent %s transaction %s", method, transaction_hash)
    return wait_for_confirmations(connection, transaction_hash, confirmations, poll_interval)
