"""Tests for transactions.py"""

from __future__ import annotations

import threading
from itertools import count

import eth_abi
import pytest
from eth_account import Account
from eth_utils.abi import function_signature_to_4byte_selector
from eth_utils.address import to_checksum_address
from eth_utils.crypto import keccak

from ethcall.test_fixtures import DAI_ADDRESS, ETH_ADDRESS, ONESPLIT_ADDRESS, FakeRpcError

from .auth import SigningKey
from .errors import (
    ArityMismatch,
    BatchSubmissionFailed,
    InvalidAddress,
    MethodNotFound,
    RpcFailure,
    TimedOut,
    TypeMismatch,
)
from .options import CallOptions
from .transactions import call_read, call_read_batch, call_write, estimate_gas, wait_for_confirmations

# Fixtures are injected by pytest
# pylint: disable=redefined-outer-name

# The first development account of hardhat and anvil
DEV_KEY = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

TX_HASH = "0x" + "ab" * 32
RECEIPT = {
    "transactionHash": TX_HASH,
    "transactionIndex": "0x2",
    "blockHash": "0x" + "11" * 32,
    "blockNumber": "0xa",
    "gasUsed": "0x5208",
    "status": "0x1",
    "logs": [],
}


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _result(*values: int) -> str:
    return "0x" + b"".join(_word(value) for value in values).hex()


def _raise(err: Exception):
    def handler(_params):
        raise err

    return handler


class TestCallRead:
    """Tests for call_read"""

    def test_get_expected_return(self, fake_node, onesplit):
        """Arguments are encoded against the declared inputs and outputs are decoded to byte buffers."""
        returned = eth_abi.encode(["uint256", "uint256[]"], [1234, [1, 2]])
        fake_node.on("eth_call", "0x" + returned.hex())

        result = call_read(onesplit, "getExpectedReturn", [DAI_ADDRESS, ETH_ADDRESS, 1000, 100, 0])

        assert result == [_word(1234), [_word(1), _word(2)]]
        method, (transaction, block) = fake_node.requests[-1]
        assert method == "eth_call"
        assert block == "latest"
        assert transaction["to"] == to_checksum_address(ONESPLIT_ADDRESS)
        assert "from" not in transaction
        selector = function_signature_to_4byte_selector("getExpectedReturn(address,address,uint256,uint256,uint256)")
        expected_args = eth_abi.encode(
            ["address", "address", "uint256", "uint256", "uint256"], [DAI_ADDRESS, ETH_ADDRESS, 1000, 100, 0]
        )
        assert transaction["data"] == "0x" + (selector + expected_args).hex()

    def test_caller_block_and_options(self, fake_node, onesplit):
        """The caller, block and overrides end up in the request."""
        fake_node.on("eth_call", _result(5))

        result = call_read(
            onesplit, "totalSupply", [], from_address=DAI_ADDRESS, block=100, options=CallOptions(gas=50000)
        )

        assert result == [_word(5)]
        transaction, block = fake_node.requests[-1][1]
        assert block == "0x64"
        assert transaction["from"] == to_checksum_address(DAI_ADDRESS)
        assert transaction["gas"] == hex(50000)

    def test_empty_caller_is_no_caller(self, fake_node, onesplit):
        """An empty caller string is ignored."""
        fake_node.on("eth_call", _result(5))
        call_read(onesplit, "totalSupply", [], from_address="")
        assert "from" not in fake_node.requests[-1][1][0]

    def test_revert_names_custom_error(self, fake_node, onesplit):
        """Revert data matching a declared error is named in the failure."""
        revert_data = "0x" + (keccak(text="ReturnAmountIsNotEnough(uint256)")[:4] + _word(1)).hex()
        fake_node.on("eth_call", _raise(FakeRpcError("execution reverted", code=3, data=revert_data)))

        with pytest.raises(RpcFailure) as excinfo:
            call_read(onesplit, "totalSupply", [], block=7)

        assert "ReturnAmountIsNotEnough" in str(excinfo.value)
        assert excinfo.value.function_name == "totalSupply"
        assert excinfo.value.block_number == 7
        assert excinfo.value.rpc_error is not None
        assert excinfo.value.rpc_error["code"] == 3

    def test_undecodable_output(self, fake_node, onesplit):
        """Return data that does not match the outputs is an rpc failure."""
        fake_node.on("eth_call", "0x01")
        with pytest.raises(RpcFailure):
            call_read(onesplit, "totalSupply", [])

    def test_timeout(self, fake_node, onesplit):
        """A slow node times out."""
        fake_node.on("eth_call", _result(5))
        fake_node.delay = 0.5
        with pytest.raises(TimedOut):
            call_read(onesplit, "totalSupply", [], timeout=0.05)

    def test_codec_errors_are_raised_before_sending(self, fake_node, onesplit):
        """Lookup and encoding errors never reach the node."""
        with pytest.raises(MethodNotFound):
            call_read(onesplit, "balanceOf", [DAI_ADDRESS])
        with pytest.raises(ArityMismatch):
            call_read(onesplit, "getExpectedReturn", [DAI_ADDRESS])
        with pytest.raises(TypeMismatch):
            call_read(onesplit, "getExpectedReturn", [1, ETH_ADDRESS, 1000, 100, 0])
        assert not fake_node.requests


def test_concurrent_reads_share_a_connection(fake_node, onesplit):
    """Reads from two threads on one contract handle both complete."""
    fake_node.on("eth_call", "0x" + eth_abi.encode(["uint256", "uint256[]"], [5, []]).hex())
    fake_node.delay = 0.3
    results: list[list] = []
    errors: list[Exception] = []

    def read():
        try:
            results.append(call_read(onesplit, "getExpectedReturn", [DAI_ADDRESS, ETH_ADDRESS, 1000, 100, 0]))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            errors.append(exc)

    threads = [threading.Thread(target=read) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    assert results == [[_word(5), []], [_word(5), []]]


class TestCallReadBatch:
    """Tests for call_read_batch"""

    def test_order_is_preserved(self, fake_node, onesplit):
        """One round-trip, results in input order."""
        counter = count(1)
        fake_node.on("eth_call", lambda params: _result(next(counter)))

        results = call_read_batch(onesplit, "totalSupply", [[], [], []])

        assert results == [[_word(1)], [_word(2)], [_word(3)]]
        assert len(fake_node.batches) == 1
        assert len(fake_node.batches[0]) == 3

    def test_each_argument_set_is_encoded(self, fake_node, onesplit):
        """Every element gets its own call data."""
        fake_node.on("eth_call", "0x" + eth_abi.encode(["uint256", "uint256[]"], [1, []]).hex())

        call_read_batch(
            onesplit,
            "getExpectedReturn",
            [[DAI_ADDRESS, ETH_ADDRESS, 1000, 100, 0], [ETH_ADDRESS, DAI_ADDRESS, 2000, 100, 0]],
        )

        (_, (first, _)), (_, (second, _)) = fake_node.batches[0]
        assert first["data"] != second["data"]
        assert first["data"][:10] == second["data"][:10]

    def test_second_element_fails(self, fake_node, onesplit):
        """A failing element raises with its index and the results before it."""
        counter = count(1)

        def handler(_params):
            index = next(counter)
            if index == 2:
                raise FakeRpcError("execution reverted")
            return _result(index)

        fake_node.on("eth_call", handler)

        with pytest.raises(RpcFailure) as excinfo:
            call_read_batch(onesplit, "totalSupply", [[], [], []])

        assert excinfo.value.index == 1
        assert excinfo.value.partial_results == [[_word(1)]]

    def test_submission_failure(self, fake_node, onesplit):
        """A rejected batch yields no result at all."""
        fake_node.on("eth_call", _result(1))
        fake_node.reject_batches = True
        with pytest.raises(BatchSubmissionFailed):
            call_read_batch(onesplit, "totalSupply", [[], []])
        assert not fake_node.requests

    def test_timeout(self, fake_node, onesplit):
        """A single timeout governs the whole batch."""
        fake_node.on("eth_call", _result(1))
        fake_node.delay = 0.5
        with pytest.raises(TimedOut):
            call_read_batch(onesplit, "totalSupply", [[], []], timeout=0.05)

    def test_input_must_be_a_sequence(self, fake_node, onesplit):
        """The argument sets come as a sequence."""
        with pytest.raises(ArityMismatch):
            call_read_batch(onesplit, "totalSupply", "abc")  # type: ignore[arg-type]
        assert call_read_batch(onesplit, "totalSupply", []) == []
        assert not fake_node.batches


class TestEstimateGas:
    """Tests for estimate_gas"""

    def test_estimate(self, fake_node, onesplit):
        """The estimate comes back as a 32 byte buffer."""
        fake_node.on("eth_estimateGas", "0x5208")
        estimate = estimate_gas(onesplit, "swap", [DAI_ADDRESS, ETH_ADDRESS, 1, 0, [1, 2], 0], DAI_ADDRESS)
        assert estimate == _word(21000)
        transaction = fake_node.requests[-1][1][0]
        assert transaction["from"] == to_checksum_address(DAI_ADDRESS)

    def test_caller_is_required(self, fake_node, onesplit):
        """Unlike reads, estimates need a caller."""
        for caller in [None, ""]:
            with pytest.raises(InvalidAddress):
                estimate_gas(onesplit, "totalSupply", [], caller)
        assert not fake_node.requests


def _mined_node(fake_node):
    fake_node.on("eth_getTransactionReceipt", RECEIPT)
    fake_node.on("eth_blockNumber", "0xc")
    return fake_node


class TestCallWrite:
    """Tests for call_write"""

    def test_unlocked_account(self, fake_node, onesplit):
        """An address caller sends through the node's account."""
        _mined_node(fake_node).on("eth_sendTransaction", TX_HASH)

        receipt = call_write(onesplit, "distribute", [[1, 2]], DAI_ADDRESS, confirmations=2, poll_interval=0.01)

        assert receipt.transaction_hash == bytes.fromhex(TX_HASH[2:])
        assert receipt.transaction_index == 2
        assert receipt.block_number == 10
        assert receipt.gas_used == _word(21000)
        assert receipt.status == 1
        method, (transaction,) = fake_node.requests[0]
        assert method == "eth_sendTransaction"
        assert transaction["from"] == to_checksum_address(DAI_ADDRESS)

    def test_signing_key(self, fake_node, onesplit):
        """A key caller fills in the transaction, signs it and scrubs the key."""
        sent = []
        _mined_node(fake_node)
        fake_node.on("eth_getTransactionCount", "0x3")
        fake_node.on("eth_estimateGas", "0x5208")
        fake_node.on("eth_gasPrice", hex(10**9))
        fake_node.on("eth_chainId", "0x1")
        fake_node.on("eth_sendRawTransaction", lambda params: sent.append(params[0]) or TX_HASH)
        key = SigningKey(bytes.fromhex(DEV_KEY))

        receipt = call_write(onesplit, "distribute", [[1]], key, confirmations=0)

        assert receipt.block_number == 10
        assert key.scrubbed
        assert Account.recover_transaction(sent[0]) == DEV_ADDRESS
        assert fake_node.requests[0] == ("eth_getTransactionCount", [DEV_ADDRESS, "pending"])

    def test_hex_key_and_overrides(self, fake_node, onesplit):
        """Overrides skip the node lookups."""
        _mined_node(fake_node)
        fake_node.on("eth_gasPrice", hex(10**9))
        fake_node.on("eth_chainId", "0x1")
        fake_node.on("eth_sendRawTransaction", TX_HASH)

        call_write(
            onesplit, "distribute", [[1]], "0x" + DEV_KEY, confirmations=0, options=CallOptions(gas=100000, nonce=7)
        )

        assert "eth_getTransactionCount" not in fake_node.methods()
        assert "eth_estimateGas" not in fake_node.methods()

    def test_confirmations_from_env(self, monkeypatch, fake_node, onesplit):
        """Without an explicit count, CONFIRMATIONS decides how long the write waits."""
        monkeypatch.setenv("CONFIRMATIONS", "0")
        fake_node.on("eth_sendTransaction", TX_HASH)
        fake_node.on("eth_getTransactionReceipt", RECEIPT)
        # The head is the transaction's own block
        fake_node.on("eth_blockNumber", "0xa")

        receipt = call_write(onesplit, "distribute", [[1]], DAI_ADDRESS)

        assert receipt.block_number == 10
        assert fake_node.methods().count("eth_getTransactionReceipt") == 1

    def test_key_is_scrubbed_on_failure(self, fake_node, onesplit):
        """A failed send still erases the key."""
        fake_node.on("eth_getTransactionCount", "0x0")
        fake_node.on("eth_estimateGas", _raise(FakeRpcError("execution reverted")))
        key = SigningKey(bytes.fromhex(DEV_KEY))

        with pytest.raises(RpcFailure) as excinfo:
            call_write(onesplit, "distribute", [[1]], key)

        assert key.scrubbed
        assert excinfo.value.function_name == "distribute"


class TestWaitForConfirmations:
    """Tests for wait_for_confirmations"""

    def test_polls_until_confirmed(self, fake_node, node_connection):
        """Pending receipts and shallow blocks are polled again."""
        receipts = iter([None, None])
        blocks = iter(["0xa", "0xb"])
        fake_node.on("eth_getTransactionReceipt", lambda params: next(receipts, RECEIPT))
        fake_node.on("eth_blockNumber", lambda params: next(blocks, "0xc"))

        receipt = wait_for_confirmations(node_connection, TX_HASH, confirmations=2, poll_interval=0.01)

        assert receipt.block_number == 10
        assert fake_node.methods().count("eth_getTransactionReceipt") == 5
        assert fake_node.methods().count("eth_blockNumber") == 3

    def test_zero_confirmations(self, fake_node, node_connection):
        """Zero confirmations return as soon as the transaction is mined."""
        fake_node.on("eth_getTransactionReceipt", RECEIPT)
        fake_node.on("eth_blockNumber", "0xa")
        receipt = wait_for_confirmations(node_connection, TX_HASH, confirmations=0, poll_interval=0.01)
        assert receipt.transaction_hash == bytes.fromhex(TX_HASH[2:])
