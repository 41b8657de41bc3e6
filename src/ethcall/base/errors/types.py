"""Error types from the contract abi"""

from typing import Literal, Sequence, TypedDict

from eth_typing import ABIComponent


class ABIError(TypedDict, total=True):
    """ABI error definition."""

    name: str
    inputs: Sequence[ABIComponent]
    type: Literal["error"]
