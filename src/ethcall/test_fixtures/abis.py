"""Contract interfaces used across the tests."""

from __future__ import annotations

from typing import Any

# The 1split aggregator address on mainnet
ONESPLIT_ADDRESS = "0xc586bef4a0992c495cf22e1aeee4e446cecdee0e"

DAI_ADDRESS = "0x6b175474e89094c44da98b954eedeac495271d0f"
ETH_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


def _params(*types: str) -> list[dict[str, Any]]:
    return [{"name": f"arg{i}", "type": abi_type, "internalType": abi_type} for i, abi_type in enumerate(types)]


# A trimmed 1split interface, plus a token transfer event and a custom error
ONESPLIT_ABI: list[dict[str, Any]] = [
    {
        "name": "getExpectedReturn",
        "type": "function",
        "stateMutability": "view",
        "inputs": _params("address", "address", "uint256", "uint256", "uint256"),
        "outputs": _params("uint256", "uint256[]"),
    },
    {
        "name": "totalSupply",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": _params("uint256"),
    },
    {
        "name": "swap",
        "type": "function",
        "stateMutability": "payable",
        "inputs": _params("address", "address", "uint256", "uint256", "uint256[]", "uint256"),
        "outputs": _params("uint256"),
    },
    {
        "name": "distribute",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": _params("bytes[]"),
        "outputs": [],
    },
    {
        "name": "Transfer",
        "type": "event",
        "anonymous": False,
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
    },
    {
        "name": "ReturnAmountIsNotEnough",
        "type": "error",
        "inputs": _params("uint256"),
    },
]
