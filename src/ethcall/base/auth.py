"""The two ways of authenticating a state-changing call."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Union

from eth_account import Account

from .conversions import parse_address, strip_hex_prefix, to_checksum
from .errors import InvalidAddress, TypeMismatch


class SigningKey:
    """A private key held only long enough to sign one transaction.

    The key lives in a mutable buffer so that `scrub` can zero it in place.
    """

    def __init__(self, key: bytes | bytearray):
        if len(key) != 32:
            raise TypeMismatch(f"A private key must be 32 bytes, got {len(key)}")
        self._key = bytearray(key)
        self._scrubbed = False

    @property
    def address(self) -> bytes:
        """The 20 byte address controlled by the key."""
        self._check_live()
        return bytes.fromhex(strip_hex_prefix(Account.from_key(bytes(self._key)).address))

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        """Sign a transaction and return the raw signed bytes.

        Arguments
        ---------
        transaction: dict[str, Any]
            A fully populated transaction (nonce, gas, gasPrice, chainId, to, data, value).

        Returns
        -------
        bytes
            The raw transaction, ready for `eth_sendRawTransaction`.
        """
        self._check_live()
        signed = Account.sign_transaction(transaction, bytes(self._key))
        return bytes(signed.raw_transaction)

    def scrub(self) -> None:
        """Zero the key material. The key cannot be used afterwards."""
        for i in range(len(self._key)):
            self._key[i] = 0
        self._scrubbed = True

    @property
    def scrubbed(self) -> bool:
        """Whether the key material has been erased."""
        return self._scrubbed

    def _check_live(self) -> None:
        if self._scrubbed:
            raise ValueError("The signing key has already been scrubbed")

    def __repr__(self) -> str:
        return f"SigningKey(scrubbed={self._scrubbed})"


@dataclass(frozen=True)
class ExternalAccount:
    """An account whose key is held (and unlocked) by the node."""

    address: bytes
    """The 20 byte address."""

    @property
    def checksum_address(self) -> str:
        """The address formatted for the rpc layer."""
        return to_checksum(self.address)


Caller = Union[SigningKey, ExternalAccount]


def _signing_key_from_hex(key_text: bytearray) -> SigningKey:
    digits = key_text.strip()
    if digits[:2] in (b"0x", b"0X"):
        digits = digits[2:]
    try:
        key_bytes = bytearray(bytes.fromhex(digits.decode("ascii")))
    except (ValueError, UnicodeDecodeError) as exc:
        raise TypeMismatch("Failed to decode private key") from exc
    try:
        return SigningKey(key_bytes)
    finally:
        for buffer in (key_bytes, digits):
            for i in range(len(buffer)):
                buffer[i] = 0


def caller_from_value(value: Any) -> Caller:
    """Build the caller of a write from a dynamic value.

    Arguments
    ---------
    value: Any
        An address (text or 20 bytes) for an account unlocked on the node, otherwise a hex
        private key, or the path of a file holding a hex private key.

    Returns
    -------
    Caller
        `ExternalAccount` or `SigningKey`.
    """
    if isinstance(value, (SigningKey, ExternalAccount)):
        return value
    if isinstance(value, (bytes, bytearray)) and len(value) == 20:
        return ExternalAccount(bytes(value))
    if not isinstance(value, str) or not value:
        raise InvalidAddress("Expected an address, a private key or a key file path")
    try:
        return ExternalAccount(parse_address(value))
    except InvalidAddress:
        pass
    if os.path.isfile(value):
        with open(value, mode="rb") as file:
            key_text = bytearray(file.read())
    else:
        key_text = bytearray(value.encode("ascii", errors="replace"))
    try:
        return _signing_key_from_hex(key_text)
    finally:
        for i in range(len(key_text)):
            key_text[i] = 0
