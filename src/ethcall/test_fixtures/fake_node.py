"""An in-process JSON-RPC node for tests."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable

from web3 import AsyncWeb3
from web3.providers.async_base import AsyncBaseProvider
from web3.types import RPCEndpoint, RPCResponse

from ethcall.base.connection import ConnectionHandle


class FakeRpcError(Exception):
    """Raised by a handler to answer with a JSON-RPC error object."""

    def __init__(self, message: str, code: int = -32000, data: Any = None):
        super().__init__(message)
        self.error: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            self.error["data"] = data


class FakeNode:
    """Answers JSON-RPC requests from per-method handlers and records every request.

    A handler is either a constant result or a callable taking the params list.
    """

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.requests: list[tuple[str, list[Any]]] = []
        self.batches: list[list[tuple[str, list[Any]]]] = []
        self.pushed: deque[dict[str, Any]] = deque()
        self.reject_batches = False
        self.delay = 0.0
        self._next_id = 0

    def on(self, method: str, handler: Callable[[list[Any]], Any] | Any) -> FakeNode:
        """Register the answer to a method."""
        self.handlers[method] = handler
        return self

    def methods(self) -> list[str]:
        """The methods requested so far, in order."""
        return [method for method, _ in self.requests]

    def push(self, message: dict[str, Any]) -> None:
        """Queue a subscription message, sent to websocket clients once they subscribe."""
        self.pushed.append(message)

    def respond(self, method: str, params: Any, request_id: Any = None) -> RPCResponse:
        """Build the response to one request."""
        params = list(params)
        self.requests.append((method, params))
        self._next_id += 1
        response: dict[str, Any] = {"jsonrpc": "2.0", "id": self._next_id if request_id is None else request_id}
        if method not in self.handlers:
            response["error"] = {"code": -32601, "message": f"the method {method} does not exist/is not available"}
            return response  # type: ignore[return-value]
        handler = self.handlers[method]
        try:
            response["result"] = handler(params) if callable(handler) else handler
        except FakeRpcError as err:
            response["error"] = err.error
        return response  # type: ignore[return-value]


class FakeProvider(AsyncBaseProvider):
    """A web3 provider backed by a `FakeNode`."""

    endpoint_uri = "http://fake-node"

    def __init__(self, node: FakeNode):
        super().__init__()
        self.node = node

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        if self.node.delay:
            await asyncio.sleep(self.node.delay)
        return self.node.respond(method, params)

    async def make_batch_request(self, requests: list[tuple[RPCEndpoint, Any]]) -> list[RPCResponse]:
        if self.node.delay:
            await asyncio.sleep(self.node.delay)
        if self.node.reject_batches:
            raise ConnectionError("connection reset while sending the batch")
        self.node.batches.append([(method, list(params)) for method, params in requests])
        return [self.node.respond(method, params) for method, params in requests]

    async def is_connected(self, show_traceback: bool = False) -> bool:
        return True


def fake_connection(node: FakeNode, timeout: float = 5) -> ConnectionHandle:
    """Build a ready http connection to a fake node."""
    return ConnectionHandle.from_web3(AsyncWeb3(FakeProvider(node)), timeout=timeout)
