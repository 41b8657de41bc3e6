"""Defines the node connection configuration from env vars."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, TypeVar

from dotenv import load_dotenv
from eth_typing import URI

DEFAULT_RPC_URI = URI("https://cloudflare-eth.com")
DEFAULT_TIMEOUT = 30
DEFAULT_CONFIRMATIONS = 12
DEFAULT_EVENT_POLL_INTERVAL = 1.0
DEFAULT_CONFIRMATION_POLL_INTERVAL = 1.0

NumberT = TypeVar("NumberT", int, float)


@dataclass
class EthConfig:
    """The configuration dataclass for node connections."""

    rpc_uri: URI | str = DEFAULT_RPC_URI
    """The uri to the ethereum node."""
    timeout: float = DEFAULT_TIMEOUT
    """The timeout, in seconds, of a single network round-trip."""
    confirmations: int = DEFAULT_CONFIRMATIONS
    """The number of blocks mined on top of a write before it is considered final."""
    event_poll_interval: float = DEFAULT_EVENT_POLL_INTERVAL
    """The time in seconds spent waiting on an event subscription before checking for cancellation."""
    confirmation_poll_interval: float = DEFAULT_CONFIRMATION_POLL_INTERVAL
    """The time in seconds between two receipt polls while waiting for confirmations."""

    def __post_init__(self):
        if isinstance(self.rpc_uri, str):
            self.rpc_uri = URI(self.rpc_uri)
        self.timeout = float(self.timeout)
        self.confirmations = int(self.confirmations)
        self.event_poll_interval = float(self.event_poll_interval)
        self.confirmation_poll_interval = float(self.confirmation_poll_interval)


def _number_from_env(name: str, default: NumberT, parse: Callable[[str], NumberT], allow_zero: bool) -> NumberT:
    """Read a non-negative number from an env var, falling back to the default with a warning."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = parse(value.strip())
    except ValueError:
        logging.warning("Ignoring invalid %s=%s, using %s", name, value, default)
        return default
    # Written so that nan is rejected too
    if not (parsed > 0 or (allow_zero and parsed == 0)):
        logging.warning("Ignoring out of range %s=%s, using %s", name, value, default)
        return default
    return parsed


def get_default_rpc_uri() -> URI:
    """Get the node uri from the `RPC_URI` env var, defaulting to a public mainnet node."""
    return URI(os.getenv("RPC_URI", DEFAULT_RPC_URI))


def get_default_timeout() -> float:
    """Get the per round-trip timeout from the `WEB3_TIMEOUT` env var.

    Returns
    -------
    float
        The timeout in seconds. Unset, unparsable or non-positive values give 30 seconds.
    """
    return _number_from_env("WEB3_TIMEOUT", float(DEFAULT_TIMEOUT), float, allow_zero=False)


def get_default_confirmations() -> int:
    """Get the number of confirmations a write waits for from the `CONFIRMATIONS` env var.

    Returns
    -------
    int
        The number of blocks. Unset, unparsable or negative values give 12; zero is allowed.
    """
    return _number_from_env("CONFIRMATIONS", DEFAULT_CONFIRMATIONS, int, allow_zero=True)


def get_default_event_poll_interval() -> float:
    """Get the event poll interval in seconds from the `EVENT_POLL_INTERVAL` env var."""
    return _number_from_env("EVENT_POLL_INTERVAL", DEFAULT_EVENT_POLL_INTERVAL, float, allow_zero=False)


def get_default_confirmation_poll_interval() -> float:
    """Get the receipt poll interval in seconds from the `CONFIRMATION_POLL_INTERVAL` env var."""
    return _number_from_env(
        "CONFIRMATION_POLL_INTERVAL", DEFAULT_CONFIRMATION_POLL_INTERVAL, float, allow_zero=False
    )


def build_eth_config(dotenv_file: str = "eth.env") -> EthConfig:
    """Build an eth config that looks for environmental variables.
    If env var exists, use that, otherwise, default.

    Arguments
    ---------
    dotenv_file: str, optional
        The path location of the dotenv file to load from.
        Defaults to "eth.env".

    Returns
    -------
    EthConfig
        Config settings required to connect to the eth node
    """
    # Look for and load local config if it exists
    if os.path.exists(dotenv_file):
        load_dotenv(dotenv_file)

    return EthConfig(
        rpc_uri=get_default_rpc_uri(),
        timeout=get_default_timeout(),
        confirmations=get_default_confirmations(),
        event_poll_interval=get_default_event_poll_interval(),
        confirmation_poll_interval=get_default_confirmation_poll_interval(),
    )
