"""Event signature hashing used to build log filters."""

from __future__ import annotations

from typing import Any, Sequence

from eth_utils.crypto import keccak

from .catalog import get_event_signature


def hash_event_signature(signature: str) -> bytes:
    """Hash a canonical event signature such as `Transfer(address,uint256)`.

    Arguments
    ---------
    signature: str
        The canonical event signature.

    Returns
    -------
    bytes
        The 32 byte keccak-256 digest, i.e. the topic 0 of matching logs.
    """
    return keccak(text=signature)


def hash_event(event_name: str, abi: Sequence[dict[str, Any]]) -> bytes:
    """Look up an event in the interface document and hash its signature."""
    return hash_event_signature(get_event_signature(event_name, abi))
