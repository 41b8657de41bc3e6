"""Tests for connection.py"""

from __future__ import annotations

import asyncio
import threading
import time

import pytest
from eth_utils.address import to_checksum_address
from web3 import AsyncWeb3

from ethcall.test_fixtures import DAI_ADDRESS, FakeProvider, FakeRpcError

from .connection import ConnectionHandle, ConnectionState, TransportKind, connect_node, with_timeout
from .errors import BatchSubmissionFailed, ConnectionFailed, RpcFailure, TimedOut, UnsupportedTransport

# Fixtures are injected by pytest
# pylint: disable=redefined-outer-name


def _raise(err: Exception):
    def handler(_params):
        raise err

    return handler


class TestConnect:
    """Transport selection and the connection state machine."""

    def test_http_fallback(self):
        """An http url cannot be streamed and falls back to request/response."""
        connection = connect_node("http://localhost:8545", timeout=2)
        try:
            assert connection.state is ConnectionState.READY
            assert connection.transport_kind is TransportKind.HTTP
            assert not connection.is_streaming
        finally:
            connection.close()

    def test_both_transports_fail(self):
        """A url neither transport accepts fails, and the handle cannot be retried."""
        connection = ConnectionHandle("ftp://localhost:8545", timeout=2)
        with pytest.raises(ConnectionFailed):
            connection.connect()
        assert connection.state is ConnectionState.FAILED
        with pytest.raises(ConnectionFailed):
            connection.connect()
        with pytest.raises(ConnectionFailed):
            _ = connection.web3

    def test_websocket(self, websocket_node):
        """A websocket url gives a streaming connection."""
        connection = connect_node(websocket_node.url, timeout=5)
        try:
            assert connection.state is ConnectionState.READY
            assert connection.transport_kind is TransportKind.STREAMING
            assert connection.is_streaming
        finally:
            connection.close()

    def test_default_url(self, monkeypatch, websocket_node):
        """Without a url, RPC_URI is used."""
        monkeypatch.setenv("RPC_URI", websocket_node.url)
        connection = connect_node(timeout=5)
        try:
            assert connection.node_url == websocket_node.url
            assert connection.is_streaming
        finally:
            connection.close()

    def test_from_web3(self, fake_node):
        """Wrapping a web3 instance gives a ready handle."""
        connection = ConnectionHandle.from_web3(AsyncWeb3(FakeProvider(fake_node)), timeout=3)
        assert connection.state is ConnectionState.READY
        assert connection.timeout == 3
        assert connection.connect() is connection
        connection.close()
        assert connection.transport_kind is TransportKind.HTTP


class TestRequest:
    """Tests for single requests."""

    def test_result(self, fake_node, node_connection):
        """The result field is returned."""
        fake_node.on("eth_chainId", "0x1")
        assert node_connection.call("eth_chainId", []) == "0x1"
        assert fake_node.requests == [("eth_chainId", [])]

    def test_error_response(self, fake_node, node_connection):
        """An error response is an rpc failure carrying the error object."""
        fake_node.on("eth_call", _raise(FakeRpcError("execution reverted", code=3)))
        with pytest.raises(RpcFailure) as excinfo:
            node_connection.call("eth_call", [{}, "latest"])
        assert excinfo.value.rpc_error == {"code": 3, "message": "execution reverted"}
        assert "code 3: execution reverted" in str(excinfo.value)

    def test_unknown_method(self, node_connection):
        """Methods the node does not serve fail."""
        with pytest.raises(RpcFailure):
            node_connection.call("eth_mining", [])

    def test_transport_exception(self, fake_node, node_connection):
        """Exceptions from the provider are wrapped."""
        fake_node.on("eth_chainId", _raise(ConnectionResetError("reset by peer")))
        with pytest.raises(RpcFailure) as excinfo:
            node_connection.call("eth_chainId", [])
        assert isinstance(excinfo.value.orig_exception, ConnectionResetError)

    def test_timeout(self, fake_node, node_connection):
        """A slow response times out."""
        fake_node.on("eth_chainId", "0x1")
        fake_node.delay = 0.5
        with pytest.raises(TimedOut):
            node_connection.call("eth_chainId", [], timeout=0.05)


class TestBatchRequest:
    """Tests for batch requests."""

    def test_responses_in_order(self, fake_node, node_connection):
        """Raw responses come back in request order."""
        fake_node.on("eth_chainId", "0x1").on("eth_blockNumber", "0x10")
        responses = node_connection.run(node_connection.batch_request([("eth_blockNumber", []), ("eth_chainId", [])]))
        assert [response["result"] for response in responses] == ["0x10", "0x1"]
        assert len(fake_node.batches) == 1

    def test_rejected(self, fake_node, node_connection):
        """A batch the transport rejects fails as a whole."""
        fake_node.reject_batches = True
        with pytest.raises(BatchSubmissionFailed) as excinfo:
            node_connection.run(node_connection.batch_request([("eth_chainId", [])]))
        assert isinstance(excinfo.value.orig_exception, ConnectionError)


class TestSubscriptions:
    """Subscriptions need a streaming transport."""

    def test_http_cannot_subscribe(self, node_connection):
        """Subscribing over http is unsupported."""
        with pytest.raises(UnsupportedTransport):
            node_connection.run(node_connection.subscribe_logs({"address": "0x0"}))
        with pytest.raises(UnsupportedTransport):
            node_connection.run(node_connection.next_subscription_message())

    def test_streaming_subscribe(self, fake_node, streaming_connection):
        """The subscription id is returned and its messages are delivered."""
        fake_node.on("eth_subscribe", "0xabc").on("eth_unsubscribe", True)
        log = {
            "address": DAI_ADDRESS,
            "topics": [],
            "data": "0x01",
            "blockNumber": "0x1",
            "blockHash": "0x" + "33" * 32,
            "transactionHash": "0x" + "44" * 32,
            "transactionIndex": "0x0",
            "logIndex": "0x0",
            "removed": False,
        }
        fake_node.push(
            {"jsonrpc": "2.0", "method": "eth_subscription", "params": {"subscription": "0xabc", "result": log}}
        )
        log_filter = {"address": to_checksum_address(DAI_ADDRESS), "topics": []}

        assert streaming_connection.run(streaming_connection.subscribe_logs(log_filter)) == "0xabc"
        message = streaming_connection.run(
            with_timeout(streaming_connection.next_subscription_message(), 5, "subscription message")
        )
        assert message["subscription"] == "0xabc"
        assert streaming_connection.run(streaming_connection.unsubscribe("0xabc")) is True
        assert [method for method, _ in fake_node.requests] == ["eth_subscribe", "eth_unsubscribe"]
        assert fake_node.requests[0][1][0] == "logs"


def test_close(fake_node, node_connection):
    """A closed handle refuses further requests."""
    fake_node.on("eth_chainId", "0x1")
    node_connection.close()
    assert node_connection.state is ConnectionState.CLOSED
    with pytest.raises(ConnectionFailed):
        node_connection.call("eth_chainId", [])
    # Closing twice is harmless
    node_connection.close()


class TestBlockingBridge:
    """Blocking calls sharing one handle."""

    def test_concurrent_threads(self, fake_node, node_connection):
        """Calls from several threads interleave on the connection's loop."""
        fake_node.on("eth_chainId", "0x1")
        fake_node.delay = 0.5
        results: list[str] = []
        errors: list[Exception] = []

        def call_chain_id():
            try:
                results.append(node_connection.call("eth_chainId", []))
            except Exception as exc:  # pylint: disable=broad-exception-caught
                errors.append(exc)

        threads = [threading.Thread(target=call_chain_id) for _ in range(2)]
        start = time.monotonic()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert not errors
        assert results == ["0x1", "0x1"]
        # Both requests waited on the node at the same time
        assert time.monotonic() - start < 0.9

    def test_inside_running_loop(self, fake_node, node_connection):
        """Blocking calls work from code running inside another event loop."""
        fake_node.on("eth_chainId", "0x1")

        async def caller():
            return node_connection.call("eth_chainId", [])

        assert asyncio.run(caller()) == "0x1"

    def test_from_own_loop(self, node_connection):
        """A blocking call from the connection's own loop is refused instead of deadlocking."""

        async def nested():
            node_connection.call("eth_chainId", [])

        with pytest.raises(ConnectionFailed):
            node_connection.run(nested())

    def test_close_fails_waiting_calls(self, fake_node, node_connection):
        """Closing the handle ends calls still waiting on the node."""
        fake_node.on("eth_chainId", "0x1")
        fake_node.delay = 5
        errors: list[BaseException] = []

        def call_chain_id():
            try:
                node_connection.call("eth_chainId", [])
            except BaseException as exc:  # pylint: disable=broad-exception-caught
                errors.append(exc)

        thread = threading.Thread(target=call_chain_id)
        thread.start()
        time.sleep(0.1)
        node_connection.close()
        thread.join(timeout=2)
        assert not thread.is_alive()
        assert len(errors) == 1
