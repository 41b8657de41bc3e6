"""Pytest fixtures for a fake node and a contract bound on it."""

from typing import Iterator

import pytest

from ethcall.base.connection import ConnectionHandle, connect_node
from ethcall.base.contract import ContractHandle, bind_contract

from .abis import ONESPLIT_ABI, ONESPLIT_ADDRESS
from .fake_node import FakeNode, fake_connection
from .fake_websocket_node import FakeWebsocketNode

# Fixtures defined in the same file
# pylint: disable=redefined-outer-name


@pytest.fixture
def fake_node() -> FakeNode:
    """A fake node without any handler."""
    return FakeNode()


@pytest.fixture
def node_connection(fake_node: FakeNode) -> Iterator[ConnectionHandle]:
    """A ready http connection to the fake node, closed after the test."""
    connection = fake_connection(fake_node)
    yield connection
    connection.close()


@pytest.fixture
def websocket_node(fake_node: FakeNode) -> Iterator[FakeWebsocketNode]:
    """The fake node served on a localhost websocket."""
    server = FakeWebsocketNode(fake_node)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def streaming_connection(websocket_node: FakeWebsocketNode) -> Iterator[ConnectionHandle]:
    """A websocket connection to the fake node, opened with `connect_node` and closed after the test."""
    connection = connect_node(websocket_node.url, timeout=5)
    yield connection
    connection.close()


@pytest.fixture
def onesplit(node_connection: ConnectionHandle) -> ContractHandle:
    """The 1split contract bound on the http connection."""
    return bind_contract(node_connection, ONESPLIT_ADDRESS, ONESPLIT_ABI)
