"""A `FakeNode` served over a real websocket, for the streaming transport."""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .fake_node import FakeNode


class FakeWebsocketNode:
    """Serves a `FakeNode` on a localhost websocket from a background thread.

    Requests, single or batched, are answered by the node. Once a client has sent an
    `eth_subscribe`, every message queued with `FakeNode.push` is sent to it.
    """

    def __init__(self, node: FakeNode):
        self.node = node
        self.url = ""
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="fake-websocket-node", daemon=True)
        self._server: Any = None

    def start(self) -> str:
        """Start serving and return the `ws://` url."""
        self._thread.start()
        self._server = asyncio.run_coroutine_threadsafe(self._serve(), self._loop).result()
        port = self._server.sockets[0].getsockname()[1]
        self.url = f"ws://127.0.0.1:{port}"
        return self.url

    def stop(self) -> None:
        """Close every client connection and the server."""
        if self._server is not None:
            asyncio.run_coroutine_threadsafe(self._close(), self._loop).result()
            self._server = None
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()

    async def _serve(self) -> Any:
        return await websockets.serve(self._handle, "127.0.0.1", 0)

    async def _close(self) -> None:
        self._server.close()
        await self._server.wait_closed()

    def _answer(self, request: dict[str, Any]) -> Any:
        return self.node.respond(request["method"], request.get("params") or [], request.get("id"))

    async def _handle(self, websocket: Any) -> None:
        pusher: asyncio.Task | None = None
        try:
            async for raw in websocket:
                request = json.loads(raw)
                if self.node.delay:
                    await asyncio.sleep(self.node.delay)
                if isinstance(request, list):
                    await websocket.send(json.dumps([self._answer(item) for item in request]))
                    continue
                await websocket.send(json.dumps(self._answer(request)))
                if request.get("method") == "eth_subscribe" and pusher is None:
                    pusher = asyncio.create_task(self._push_messages(websocket))
        except ConnectionClosed:
            pass
        finally:
            if pusher is not None:
                pusher.cancel()

    async def _push_messages(self, websocket: Any) -> None:
        try:
            while True:
                while self.node.pushed:
                    await websocket.send(json.dumps(self.node.pushed.popleft()))
                await asyncio.sleep(0.01)
        except ConnectionClosed:
            return
