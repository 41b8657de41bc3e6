"""Tests for event_hash.py"""

from __future__ import annotations

from eth_utils.crypto import keccak

from ethcall.test_fixtures import ONESPLIT_ABI

from .event_hash import hash_event, hash_event_signature

# keccak256("Transfer(address,address,uint256)"), the topic 0 of every ERC20 transfer
ERC20_TRANSFER_TOPIC = bytes.fromhex("ddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef")


def test_hash_matches_keccak_of_literal_signature():
    """The digest is keccak-256 over the utf-8 bytes of the signature."""
    digest = hash_event_signature("Transfer(address,uint256)")
    assert digest == keccak(b"Transfer(address,uint256)")
    assert len(digest) == 32


def test_golden_erc20_transfer():
    """The ERC20 transfer topic is a well known constant."""
    assert hash_event_signature("Transfer(address,address,uint256)") == ERC20_TRANSFER_TOPIC
    assert hash_event("Transfer", ONESPLIT_ABI) == ERC20_TRANSFER_TOPIC


def test_empty_signature():
    """Hashing is defined for any text, including the empty string."""
    assert hash_event_signature("").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
