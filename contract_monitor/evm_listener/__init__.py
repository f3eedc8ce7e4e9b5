"""
EVM node listener package.

Talks JSON-RPC to an EVM node and normalizes log and transaction
payloads into the models consumed by the range scanner.
"""

from contract_monitor.evm_listener.models import (
    BlockRange,
    LogEvent,
    TransactionInfo,
    normalize_address,
)
from contract_monitor.evm_listener.rpc import NodeClient, NodeInterface

__all__ = [
    "BlockRange",
    "LogEvent",
    "NodeClient",
    "NodeInterface",
    "TransactionInfo",
    "normalize_address",
]
