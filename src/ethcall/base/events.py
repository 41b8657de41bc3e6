"""Waiting for contract events over a log subscription."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Union

from ethcall.eth_config import get_default_event_poll_interval

from .connection import with_timeout
from .contract import ContractHandle
from .errors import RpcFailure
from .receipts import EventLog, event_log_from_rpc

# Either a callable returning True once the wait should stop, or an object with `is_set()`
# such as `threading.Event`
StopSignal = Union[Callable[[], bool], Any]


def _should_stop(should_stop: StopSignal | None) -> bool:
    if should_stop is None:
        return False
    is_set = getattr(should_stop, "is_set", None)
    if callable(is_set):
        return bool(is_set())
    return bool(should_stop())


def log_from_subscription_message(message: Mapping[str, Any], subscription_id: str | None) -> EventLog | None:
    """Get the log carried by a subscription message.

    Accepts the raw `eth_subscription` notification as well as the `{subscription, result}`
    form web3 yields. Messages of other subscriptions give None.
    """
    params = message.get("params", message)
    if params.get("subscription") not in (None, subscription_id):
        return None
    log = params.get("result")
    if not log:
        raise RpcFailure(f"Empty log in subscription message {message!r}")
    return event_log_from_rpc(log)


class EventWaiter:
    """Waits for logs of one event emitted by one contract.

    The log subscription is created on the first `wait` and reused by later ones.
    Subscriptions need a websocket connection.
    """

    def __init__(
        self,
        contract: ContractHandle,
        event_hash: bytes,
        poll_interval: float | None = None,
    ):
        if len(event_hash) != 32:
            raise ValueError(f"An event signature hash is 32 bytes, got {len(event_hash)}")
        self.contract = contract
        self.event_hash = event_hash
        self.poll_interval = poll_interval if poll_interval is not None else get_default_event_poll_interval()
        self.subscription_id: str | None = None

    @classmethod
    def for_event(cls, contract: ContractHandle, event_name: str, poll_interval: float | None = None) -> EventWaiter:
        """Build a waiter from an event name declared in the contract abi."""
        return cls(contract, contract.event_topic(event_name), poll_interval)

    @property
    def log_filter(self) -> dict[str, Any]:
        """The subscription filter: the contract address and the event's topic 0."""
        return {"address": self.contract.checksum_address, "topics": ["0x" + self.event_hash.hex()]}

    def wait(self, should_stop: StopSignal | None = None) -> EventLog | None:
        """Block until the next matching log arrives or the wait is cancelled.

        Arguments
        ---------
        should_stop: StopSignal | None, optional
            Checked once per poll interval. When it reports True the wait returns None.

        Returns
        -------
        EventLog | None
            The log, or None when cancelled.
        """
        connection = self.contract.connection
        if self.subscription_id is None:
            self.subscription_id = connection.run(
                with_timeout(connection.subscribe_logs(self.log_filter), connection.timeout, "Log subscription")
            )
            logging.info("Subscribed to logs of %s on %s", self.contract.checksum_address, self.subscription_id)
        return connection.run(self._poll(should_stop))

    async def _poll(self, should_stop: StopSignal | None) -> EventLog | None:
        connection = self.contract.connection
        while True:
            try:
                message = await asyncio.wait_for(connection.next_subscription_message(), self.poll_interval)
            except asyncio.TimeoutError:
                logging.debug("No event in the last %s seconds", self.poll_interval)
                message = None
            if _should_stop(should_stop):
                return None
            if message is None:
                continue
            log = log_from_subscription_message(message, self.subscription_id)
            if log is not None:
                return log

    def close(self) -> None:
        """Cancel the subscription, if one was created."""
        if self.subscription_id is None:
            return
        connection = self.contract.connection
        subscription_id, self.subscription_id = self.subscription_id, None
        connection.run(with_timeout(connection.unsubscribe(subscription_id), connection.timeout, "Unsubscribe"))


def wait_for_event(
    contract: ContractHandle,
    event_hash: bytes,
    should_stop: StopSignal | None = None,
    poll_interval: float | None = None,
) -> EventLog | None:
    """Wait for the next log of an event, then cancel the subscription.

    Arguments
    ---------
    contract: ContractHandle
        The emitting contract.
    event_hash: bytes
        The 32 byte event signature hash, e.g. from `hash_event`.
    should_stop: StopSignal | None, optional
        A cancellation signal checked once per poll interval.
    poll_interval: float | None, optional
        The time in seconds between cancellation checks. Defaults to the `EVENT_POLL_INTERVAL` env var, or 1.

    Returns
    -------
    EventLog | None
        The log, or None when cancelled.
    """
    waiter = EventWaiter(contract, event_hash, poll_interval)
    try:
        return waiter.wait(should_stop)
    finally:
        waiter.close()
