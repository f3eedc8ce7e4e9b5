"""
Wallet ledger: per-address transaction counts for the monitored contract.

One WalletLedger is created per run and passed explicitly to the scanner and
the monitor loop. observe() is the only way counts change. top_n() ranks by
count descending; equal counts keep first-seen order (dict insertion order +
stable sort), so identical observation sequences always rank identically.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from contract_monitor.evm_listener.models import normalize_address
from contract_monitor.monitor_logging import get_logger

logger = get_logger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision and Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class WalletActivityRecord:
    """Aggregated activity of one sender address."""

    address: str
    transaction_count: int
    last_updated: str

    def to_dict(self) -> dict[str, Any]:
        """On-disk shape: {address, transactionCount, lastUpdated}."""
        return {
            "address": self.address,
            "transactionCount": self.transaction_count,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "WalletActivityRecord":
        count = int(data["transactionCount"])
        if count < 0:
            raise ValueError(f"negative transactionCount {count}")
        return cls(
            address=normalize_address(str(data.get("address") or key)),
            transaction_count=count,
            last_updated=str(data["lastUpdated"]),
        )


class WalletLedger:
    """In-memory mapping of canonical address -> WalletActivityRecord."""

    def __init__(self, clock: Callable[[], str] = utc_now_iso) -> None:
        self._records: dict[str, WalletActivityRecord] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._records

    def get(self, address: str) -> WalletActivityRecord | None:
        return self._records.get(normalize_address(address))

    def observe(self, address: str) -> WalletActivityRecord | None:
        """Count one transaction from address; returns the updated record (None for blank input)."""
        key = normalize_address(address or "")
        if not key:
            return None
        now = self._clock()
        record = self._records.get(key)
        if record is None:
            record = WalletActivityRecord(address=key, transaction_count=1, last_updated=now)
            self._records[key] = record
        else:
            record.transaction_count += 1
            record.last_updated = now
        return record

    def top_n(self, n: int) -> list[WalletActivityRecord]:
        """Up to n records, highest count first; ties in first-seen order."""
        if n <= 0 or not self._records:
            return []
        ranked = sorted(self._records.values(), key=lambda r: -r.transaction_count)
        return ranked[:n]

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Full copy in persistence format, preserving first-seen order."""
        return {key: record.to_dict() for key, record in self._records.items()}

    def restore(self, data: dict[str, Any]) -> int:
        """
        Replace the whole mapping with data (a snapshot document).

        Invalid entries are skipped and logged; an entry whose address collides
        with an earlier one after normalization is merged into it.
        Returns the number of records loaded.
        """
        records: dict[str, WalletActivityRecord] = {}
        for key, raw in (data or {}).items():
            try:
                if not isinstance(raw, dict):
                    raise TypeError(f"expected object, got {type(raw).__name__}")
                record = WalletActivityRecord.from_dict(str(key), raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("ledger_restore_entry_skipped", address=str(key), error=str(e))
                continue
            existing = records.get(record.address)
            if existing is not None:
                existing.transaction_count += record.transaction_count
                existing.last_updated = max(existing.last_updated, record.last_updated)
                continue
            records[record.address] = record
        self._records = records
        logger.info("ledger_restored", wallets=len(records))
        return len(records)
