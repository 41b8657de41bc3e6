"""Test fixtures for ethcall."""

from .abis import DAI_ADDRESS, ETH_ADDRESS, ONESPLIT_ABI, ONESPLIT_ADDRESS
from .fake_node import FakeNode, FakeProvider, FakeRpcError, fake_connection
from .fake_websocket_node import FakeWebsocketNode
from .node_fixtures import fake_node, node_connection, onesplit, streaming_connection, websocket_node
