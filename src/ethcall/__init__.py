"""ethcall: call smart contracts with dynamically typed values over web3."""

# The base package must load before the abi package, which depends on its errors
from ethcall.base import (
    CallOptions,
    ConnectionHandle,
    ContractHandle,
    EventLog,
    ExternalAccount,
    SharedContract,
    SharedRegistry,
    SigningKey,
    TransactionReceipt,
    bind_contract,
    call_read,
    call_read_batch,
    call_write,
    connect_node,
    estimate_gas,
    wait_for_event,
)
from ethcall.abi import decode_tokens, encode_tokens, hash_event, hash_event_signature
from ethcall.eth_config import EthConfig, build_eth_config
