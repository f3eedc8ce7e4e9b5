"""
Wallet ledger and its optional JSON persistence.
"""

from contract_monitor.ledger.store import JsonLedgerStore
from contract_monitor.ledger.wallet_ledger import (
    WalletActivityRecord,
    WalletLedger,
    utc_now_iso,
)

__all__ = [
    "JsonLedgerStore",
    "WalletActivityRecord",
    "WalletLedger",
    "utc_now_iso",
]
