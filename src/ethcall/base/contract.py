"""Contracts bound to an address on a connection."""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Sequence

from web3.contract import AsyncContract
from web3.exceptions import Web3Exception

from ethcall.abi import get_event_signature, get_parameter_types, get_return_types, hash_event, parse_abi_json

from .connection import ConnectionHandle, ConnectionState
from .conversions import parse_address, to_checksum
from .errors import ConnectionFailed, InvalidAbi, MalformedAbi


@dataclass(frozen=True)
class ContractHandle:
    """One contract bound to one address on one connection.

    Handles are immutable. Rebinding builds a new handle; holders swap their reference.
    """

    contract: AsyncContract
    """The web3 contract binding."""
    abi: list[dict[str, Any]]
    """The parsed interface document."""
    address: bytes
    """The 20 byte bound address."""
    _connection: weakref.ReferenceType[ConnectionHandle] = field(repr=False, compare=False)

    @property
    def connection(self) -> ConnectionHandle:
        """The owning connection. Raises `ConnectionFailed` once it has been released."""
        connection = self._connection()
        if connection is None or connection.state is not ConnectionState.READY:
            raise ConnectionFailed(f"The connection of contract {self.checksum_address} has been released")
        return connection

    @property
    def checksum_address(self) -> str:
        """The bound address formatted for the rpc layer."""
        return to_checksum(self.address)

    def parameter_types(self, method_name: str) -> list[str]:
        """The declared input types of a method."""
        return get_parameter_types(method_name, self.abi)

    def return_types(self, method_name: str) -> list[str]:
        """The declared output types of a method."""
        return get_return_types(method_name, self.abi)

    def event_signature(self, event_name: str) -> str:
        """The canonical signature of an event."""
        return get_event_signature(event_name, self.abi)

    def event_topic(self, event_name: str) -> bytes:
        """The topic 0 hash of an event."""
        return hash_event(event_name, self.abi)


def bind_contract(
    connection: ConnectionHandle, address: Any, abi_json: str | bytes | Sequence[dict[str, Any]]
) -> ContractHandle:
    """Bind a contract at an address on a connection.

    Arguments
    ---------
    connection: ConnectionHandle
        A ready connection.
    address: Any
        The contract address, as hex text or 20 bytes.
    abi_json: str | bytes | Sequence[dict[str, Any]]
        The interface document, as JSON text or decoded.

    Returns
    -------
    ContractHandle
        The bound contract.
    """
    address_bytes = parse_address(address)
    try:
        abi = parse_abi_json(abi_json)
    except MalformedAbi as exc:
        raise InvalidAbi(str(exc)) from exc
    if not abi:
        raise InvalidAbi("Contract abi is empty")
    if connection.state is not ConnectionState.READY:
        raise ConnectionFailed(f"Cannot bind a contract on a connection in state {connection.state.value}")
    try:
        contract = connection.web3.eth.contract(address=to_checksum(address_bytes), abi=abi)
    except (Web3Exception, ValueError, TypeError) as exc:
        raise InvalidAbi(f"Failed to bind the contract abi: {exc}") from exc
    return ContractHandle(contract=contract, abi=abi, address=address_bytes, _connection=weakref.ref(connection))


class SharedContract:
    """The construction site of a contract instance shared between call sites.

    `bind` compares the configured address with the one the current handle was built from and
    rebuilds only when they differ. Other holders read `handle` and see the latest binding.
    """

    def __init__(self, connection: ConnectionHandle, abi_json: str | bytes | Sequence[dict[str, Any]]):
        self.connection = connection
        self.abi_json = abi_json
        self._handle: ContractHandle | None = None
        self._bound_address: Any = None

    def bind(self, address: Any) -> ContractHandle:
        """Get the handle for the configured address, rebuilding it when the address changed.

        Arguments
        ---------
        address: Any
            The currently configured contract address.

        Returns
        -------
        ContractHandle
            The unchanged handle when `address` matches the last binding, otherwise a new one.
        """
        if self._handle is not None and address == self._bound_address:
            return self._handle
        # A failed rebuild must not leave the previous binding reachable
        self._handle = None
        self._bound_address = None
        handle = bind_contract(self.connection, address, self.abi_json)
        logging.info("Bound contract at %s", handle.checksum_address)
        self._handle = handle
        self._bound_address = address
        return handle

    @property
    def handle(self) -> ContractHandle:
        """The current binding."""
        if self._handle is None:
            raise ConnectionFailed("The contract has not been bound to an address")
        return self._handle

    def close(self) -> None:
        """Drop the binding."""
        self._handle = None
        self._bound_address = None
