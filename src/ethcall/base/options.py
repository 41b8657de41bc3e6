"""Per-call overrides of gas, gas price, value and nonce."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .conversions import bytes_to_uint256, to_hex_quantity, uint256_to_bytes
from .errors import TypeMismatch

# Table keys accepted by `CallOptions.from_table`, mapped to field names
_OPTION_KEYS = {
    "gas": "gas",
    "gas-price": "gas_price",
    "gas_price": "gas_price",
    "value": "value",
    "nonce": "nonce",
}


@dataclass(frozen=True)
class CallOptions:
    """Optional overrides for a single call. Unset fields use the node defaults."""

    gas: int | None = None
    """The gas limit."""
    gas_price: int | None = None
    """The gas price, in wei."""
    value: int | None = None
    """The value transferred, in wei."""
    nonce: int | None = None
    """The transaction nonce."""

    @classmethod
    def from_table(cls, table: Mapping[str, Any] | None) -> CallOptions:
        """Build options from a table of 32 byte big-endian buffers.

        Arguments
        ---------
        table: Mapping[str, Any] | None
            Keys `gas`, `gas-price`, `value` and `nonce`. Unknown keys are ignored.

        Returns
        -------
        CallOptions
            The parsed options.
        """
        if not table:
            return cls()
        fields: dict[str, int] = {}
        for key, value in table.items():
            field_name = _OPTION_KEYS.get(key)
            if field_name is None:
                logging.warning("Ignored an invalid option label: %s", key)
                continue
            if not isinstance(value, (bytes, bytearray)):
                raise TypeMismatch(f"Option {key!r} must be a byte buffer, got {type(value).__name__}")
            fields[field_name] = bytes_to_uint256(bytes(value))
        return cls(**fields)

    def to_table(self) -> dict[str, bytes]:
        """Serialize the set fields as 32 byte big-endian buffers."""
        table = {}
        fields = [("gas", self.gas), ("gas-price", self.gas_price), ("value", self.value), ("nonce", self.nonce)]
        for key, value in fields:
            if value is not None:
                table[key] = uint256_to_bytes(value)
        return table

    def apply(self, transaction: dict[str, Any]) -> dict[str, Any]:
        """Add the set fields to a JSON-RPC transaction object.

        Arguments
        ---------
        transaction: dict[str, Any]
            The transaction object, e.g. `{"to": ..., "data": ...}`.

        Returns
        -------
        dict[str, Any]
            A copy of the transaction with the overrides as hex quantities.
        """
        out = dict(transaction)
        if self.gas is not None:
            out["gas"] = to_hex_quantity(self.gas)
        if self.gas_price is not None:
            out["gasPrice"] = to_hex_quantity(self.gas_price)
        if self.value is not None:
            out["value"] = to_hex_quantity(self.value)
        if self.nonce is not None:
            out["nonce"] = to_hex_quantity(self.nonce)
        return out
