"""Connections to a node, each driven by its own event loop."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Coroutine, Sequence, TypeVar
from urllib.parse import urlparse

from eth_typing import URI
from web3 import AsyncHTTPProvider, AsyncWeb3, WebSocketProvider
from web3.providers.persistent import PersistentConnectionProvider
from web3.types import RPCEndpoint, RPCResponse

from ethcall.eth_config import get_default_rpc_uri, get_default_timeout

from .errors import (
    BatchSubmissionFailed,
    ConnectionFailed,
    RpcFailure,
    TimedOut,
    UnsupportedTransport,
    describe_rpc_error,
)

T = TypeVar("T")


class TransportKind(Enum):
    """How the connection talks to the node."""

    STREAMING = "streaming"
    """A persistent websocket connection that supports subscriptions."""
    HTTP = "http"
    """Plain request/response."""


class ConnectionState(Enum):
    """Lifecycle of a `ConnectionHandle`."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


async def with_timeout(awaitable: Awaitable[T], timeout: float, description: str) -> T:
    """Await with a deadline, raising `TimedOut` when it passes.

    Arguments
    ---------
    awaitable: Awaitable[T]
        The network round-trip.
    timeout: float
        The deadline in seconds.
    description: str
        What is being awaited, for the error message.

    Returns
    -------
    T
        The result of the awaitable.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise TimedOut(f"{description} timed out after {timeout} seconds") from exc


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ConnectionHandle:
    """One live connection to a node.

    The handle owns a dedicated event loop running in a background thread. Every network
    operation on the connection is scheduled on that loop by `run`, which blocks the calling
    thread until the operation resolves; this is how the blocking call sites reach the async
    web3 providers, from plain threads as well as from code already inside another asyncio
    loop. Operations sharing a handle interleave on the loop, they never run in parallel.
    """

    def __init__(self, node_url: URI | str, timeout: float | None = None):
        self.node_url = URI(node_url)
        self.timeout = timeout if timeout is not None else get_default_timeout()
        self.state = ConnectionState.UNINITIALIZED
        self.transport_kind: TransportKind | None = None
        self._web3: AsyncWeb3 | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._subscription_messages: asyncio.Queue | None = None
        self._subscription_reader: asyncio.Task | None = None

    @classmethod
    def from_web3(cls, web3: AsyncWeb3, timeout: float | None = None) -> ConnectionHandle:
        """Wrap a web3 instance in a ready handle.

        Persistent (websocket) providers must already be connected. They give a streaming
        handle, every other provider a plain http one.

        Arguments
        ---------
        web3: AsyncWeb3
            The web3 instance, with any provider.
        timeout: float | None, optional
            The default per round-trip timeout. Defaults to `get_default_timeout()`.

        Returns
        -------
        ConnectionHandle
            A handle in the READY state.
        """
        endpoint = getattr(web3.provider, "endpoint_uri", None) or "unknown"
        connection = cls(str(endpoint), timeout=timeout)
        connection._start_loop()
        connection._web3 = web3
        if isinstance(web3.provider, PersistentConnectionProvider):
            connection.transport_kind = TransportKind.STREAMING
        else:
            connection.transport_kind = TransportKind.HTTP
        connection.state = ConnectionState.READY
        return connection

    def connect(self) -> ConnectionHandle:
        """Open the connection, trying websocket first and plain http second.

        Returns
        -------
        ConnectionHandle
            The handle itself, now READY.
        """
        if self.state is ConnectionState.READY:
            return self
        if self.state is not ConnectionState.UNINITIALIZED:
            raise ConnectionFailed(f"Cannot connect a handle in state {self.state.value}; build a new handle")
        self.state = ConnectionState.CONNECTING
        self._start_loop()
        try:
            self._web3 = self.run(self._open_streaming())
            self.transport_kind = TransportKind.STREAMING
        except Exception as ws_exc:  # pylint: disable=broad-exception-caught
            logging.info("Websocket connection to %s failed (%s), falling back to http", self.node_url, ws_exc)
            try:
                self._web3 = self._open_http()
                self.transport_kind = TransportKind.HTTP
            except Exception as http_exc:  # pylint: disable=broad-exception-caught
                self.state = ConnectionState.FAILED
                self._stop_loop()
                raise ConnectionFailed(f"Could not connect to {self.node_url}") from http_exc
        self.state = ConnectionState.READY
        logging.info("Connected to %s over %s", self.node_url, self.transport_kind.value)
        return self

    async def _open_streaming(self) -> AsyncWeb3:
        web3 = AsyncWeb3(WebSocketProvider(self.node_url))
        await with_timeout(web3.provider.connect(), self.timeout, f"Websocket connection to {self.node_url}")
        return web3

    def _open_http(self) -> AsyncWeb3:
        if urlparse(self.node_url).scheme not in ("http", "https"):
            raise ConnectionFailed(f"{self.node_url} is not an http url")
        return AsyncWeb3(AsyncHTTPProvider(self.node_url))

    def _start_loop(self) -> None:
        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, name=f"ethcall-{self.node_url}", daemon=True)
        thread.start()
        self._loop, self._loop_thread = loop, thread

    def _stop_loop(self) -> None:
        loop, thread = self._loop, self._loop_thread
        self._loop, self._loop_thread = None, None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join()
        loop.close()

    @property
    def web3(self) -> AsyncWeb3:
        """The connected web3 instance."""
        if self.state is not ConnectionState.READY or self._web3 is None:
            raise ConnectionFailed(f"Connection to {self.node_url} is not ready (state {self.state.value})")
        return self._web3

    @property
    def is_streaming(self) -> bool:
        """Whether the connection supports subscriptions."""
        return self.transport_kind is TransportKind.STREAMING

    def _check_open(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            raise ConnectionFailed(f"Connection to {self.node_url} has been released")
        return self._loop

    def _blocking_loop(self) -> asyncio.AbstractEventLoop:
        loop = self._check_open()
        if _running_loop() is loop:
            raise ConnectionFailed(f"Blocking call made from the event loop of {self.node_url}")
        return loop

    def run(self, coroutine: Coroutine[Any, Any, T]) -> T:
        """Run a coroutine on the connection's event loop and block until it completes.

        Safe to call from several threads at once, and from inside another running event
        loop. Calling it from a coroutine already running on the connection's own loop would
        deadlock and raises `ConnectionFailed` instead.
        """
        try:
            loop = self._blocking_loop()
        except ConnectionFailed:
            coroutine.close()
            raise
        return asyncio.run_coroutine_threadsafe(coroutine, loop).result()

    def call(self, method: str, params: Sequence[Any], timeout: float | None = None) -> Any:
        """Make one timed request and return its result, blocking until it resolves."""
        self._blocking_loop()
        if timeout is None:
            timeout = self.timeout
        return self.run(with_timeout(self.request(method, params), timeout, method))

    async def request(self, method: str, params: Sequence[Any], abi: Sequence[dict[str, Any]] | None = None) -> Any:
        """Send one JSON-RPC request and return its result.

        Arguments
        ---------
        method: str
            The JSON-RPC method, e.g. `eth_call`.
        params: Sequence[Any]
            The JSON-RPC params.
        abi: Sequence[dict[str, Any]] | None, optional
            The contract abi, used to name custom errors in revert data.

        Returns
        -------
        Any
            The `result` field of the response.
        """
        try:
            response = await self.web3.provider.make_request(RPCEndpoint(method), list(params))
        except (ConnectionFailed, RpcFailure):
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise RpcFailure(f"{method} failed: {exc!r}", orig_exception=exc, function_name=method) from exc
        return response_result(method, response, abi)

    async def batch_request(self, requests: Sequence[tuple[str, Sequence[Any]]]) -> list[RPCResponse]:
        """Send several JSON-RPC requests as one round-trip.

        Arguments
        ---------
        requests: Sequence[tuple[str, Sequence[Any]]]
            (method, params) pairs.

        Returns
        -------
        list[RPCResponse]
            One raw response per request, in request order. Responses are not checked for
            errors; use `response_result` on each.
        """
        try:
            responses = await self.web3.provider.make_batch_request(
                [(RPCEndpoint(method), list(params)) for method, params in requests]
            )
        except ConnectionFailed:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logging.error("Batch of %s requests could not be submitted: %r", len(requests), exc)
            raise BatchSubmissionFailed(f"Batch submission failed: {exc!r}", orig_exception=exc) from exc
        # A batch-level error comes back as a single response object
        if not isinstance(responses, list):
            error = responses.get("error") if isinstance(responses, dict) else None
            raise BatchSubmissionFailed(f"Batch rejected by the node: {error or responses!r}")
        if len(responses) != len(requests):
            raise BatchSubmissionFailed(f"Expected {len(requests)} responses, got {len(responses)}")
        return list(responses)

    def _check_streaming(self) -> None:
        if not self.is_streaming:
            raise UnsupportedTransport(f"Log subscriptions need a websocket connection, {self.node_url} is http")

    async def subscribe_logs(self, log_filter: dict[str, Any]) -> str:
        """Create a log subscription and return its id.

        The subscription goes through web3 so that its messages are routed to
        `next_subscription_message`.
        """
        self._check_streaming()
        try:
            subscription_id = await self.web3.eth.subscribe("logs", log_filter)  # type: ignore[arg-type]
        except (ConnectionFailed, RpcFailure):
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise RpcFailure(
                f"eth_subscribe failed: {exc!r}", orig_exception=exc, function_name="eth_subscribe"
            ) from exc
        self._start_subscription_reader()
        logging.debug("Created log subscription %s for %s", subscription_id, log_filter)
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Cancel a subscription."""
        self._check_streaming()
        try:
            return bool(await self.web3.eth.unsubscribe(subscription_id))  # type: ignore[arg-type]
        except (ConnectionFailed, RpcFailure):
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise RpcFailure(
                f"eth_unsubscribe failed: {exc!r}", orig_exception=exc, function_name="eth_unsubscribe"
            ) from exc

    def _start_subscription_reader(self) -> asyncio.Queue:
        if self._subscription_messages is None:
            self._subscription_messages = asyncio.Queue()
            self._subscription_reader = asyncio.create_task(self._read_subscriptions(self._subscription_messages))
        return self._subscription_messages

    async def _read_subscriptions(self, messages: asyncio.Queue) -> None:
        # The only consumer of the web3 subscription stream, waiters read from the queue
        try:
            async for message in self.web3.socket.process_subscriptions():
                messages.put_nowait(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logging.error("Subscription stream of %s failed: %r", self.node_url, exc)
            messages.put_nowait(exc)

    async def next_subscription_message(self) -> dict[str, Any]:
        """Wait for the next message pushed on any of the connection's subscriptions.

        Returns
        -------
        dict[str, Any]
            The message as formatted by web3: the `subscription` id and its `result`.
        """
        self._check_streaming()
        messages = self._start_subscription_reader()
        message = await messages.get()
        if isinstance(message, Exception):
            # Left in the queue for every later waiter
            messages.put_nowait(message)
            raise RpcFailure(f"Subscription stream of {self.node_url} failed: {message!r}", orig_exception=message)
        return dict(message)

    async def _shutdown(self) -> None:
        if self._subscription_reader is not None:
            self._subscription_reader.cancel()
            await asyncio.gather(self._subscription_reader, return_exceptions=True)
        if self._web3 is not None and isinstance(self._web3.provider, PersistentConnectionProvider):
            await self._web3.provider.disconnect()
        # Calls still waiting on the loop fail instead of blocking their threads forever
        current = asyncio.current_task()
        pending = [task for task in asyncio.all_tasks() if task is not current]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        """Tear down the provider and the event loop. The handle cannot be used afterwards."""
        if self._loop is None:
            self.state = ConnectionState.CLOSED
            return
        try:
            self.run(self._shutdown())
        finally:
            self._stop_loop()
            self._web3 = None
            self._subscription_messages = None
            self._subscription_reader = None
            self.state = ConnectionState.CLOSED
            logging.debug("Closed connection to %s", self.node_url)


def response_result(method: str, response: RPCResponse, abi: Sequence[dict[str, Any]] | None = None) -> Any:
    """Get the result of a raw JSON-RPC response, raising `RpcFailure` on an error response."""
    error = response.get("error")
    if error:
        rpc_error = dict(error) if isinstance(error, dict) else {"message": str(error)}
        raise RpcFailure(describe_rpc_error(rpc_error, abi), function_name=method, rpc_error=rpc_error)
    return response.get("result")


def connect_node(node_url: URI | str | None = None, timeout: float | None = None) -> ConnectionHandle:
    """Connect to a node, preferring a websocket transport.

    Arguments
    ---------
    node_url: URI | str | None, optional
        The node url, e.g. `ws://localhost:8546` or `https://cloudflare-eth.com`.
        Defaults to the `RPC_URI` env var.
    timeout: float | None, optional
        The default per round-trip timeout. Defaults to `get_default_timeout()`.

    Returns
    -------
    ConnectionHandle
        The connected handle.
    """
    if node_url is None:
        node_url = get_default_rpc_uri()
    return ConnectionHandle(node_url, timeout=timeout).connect()
