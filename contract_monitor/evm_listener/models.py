"""
Data models for EVM node responses.

Responsibilities:
- Define frozen dataclasses for the parts of eth_getLogs / eth_getTransactionByHash
  results the scanner consumes (transaction hash, sender).
- Define BlockRange, the unit of work handed to the scanner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def hex_to_int(value: Any) -> int | None:
    """Decode a JSON-RPC quantity ("0x1a") to int; ints pass through; None stays None."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    return int(text, 16) if text.lower().startswith("0x") else int(text)


def normalize_address(address: str) -> str:
    """Canonical ledger key: stripped, lower-case hex (checksum casing is dropped)."""
    return address.strip().lower()


@dataclass(frozen=True)
class BlockRange:
    """Inclusive block interval [from_block, to_block]."""

    from_block: int
    to_block: int

    def __post_init__(self) -> None:
        if self.from_block < 0:
            raise ValueError(f"from_block must be >= 0, got {self.from_block}")
        if self.from_block > self.to_block:
            raise ValueError(
                f"from_block ({self.from_block}) must be <= to_block ({self.to_block})"
            )

    def __len__(self) -> int:
        return self.to_block - self.from_block + 1

    def __str__(self) -> str:
        return f"[{self.from_block}, {self.to_block}]"


@dataclass(frozen=True)
class LogEvent:
    """
    Normalized log from eth_getLogs.

    Mirrors the RPC log object; only transaction_hash is needed to find the sender.
    """

    address: str
    transaction_hash: str
    block_number: int | None
    log_index: int | None
    removed: bool = False

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "LogEvent":
        """Build from a single eth_getLogs result item."""
        return cls(
            address=item.get("address") or "",
            transaction_hash=item["transactionHash"],
            block_number=hex_to_int(item.get("blockNumber")),
            log_index=hex_to_int(item.get("logIndex")),
            removed=bool(item.get("removed", False)),
        )


@dataclass(frozen=True)
class TransactionInfo:
    """Subset of eth_getTransactionByHash: hash, sender, recipient, block."""

    tx_hash: str
    sender: str | None
    to: str | None
    block_number: int | None

    @classmethod
    def from_rpc_result(cls, result: dict[str, Any]) -> "TransactionInfo":
        """Build from an eth_getTransactionByHash result object."""
        return cls(
            tx_hash=result.get("hash") or "",
            sender=result.get("from") or None,
            to=result.get("to") or None,
            block_number=hex_to_int(result.get("blockNumber")),
        )
