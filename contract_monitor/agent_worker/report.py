"""
Ranked wallet report rendering (text for the console, JSON for other tools).
"""

from __future__ import annotations

import json
from typing import Sequence

from contract_monitor.ledger.wallet_ledger import WalletActivityRecord

SEPARATOR = "-" * 34
EMPTY_MESSAGE = "No transactions recorded yet."


def format_top_wallets(records: Sequence[WalletActivityRecord], limit: int = 5) -> str:
    """Text block: title, then rank / address / count / last-updated per wallet."""
    title = f"Top {limit} Wallets by Transaction Count:"
    lines = ["", title, "=" * len(title)]
    if not records:
        lines.append(EMPTY_MESSAGE)
        return "\n".join(lines)
    for rank, record in enumerate(records, start=1):
        lines.append(f"{rank}. Address: {record.address}")
        lines.append(f"   Transactions: {record.transaction_count}")
        lines.append(f"   Last Updated: {record.last_updated}")
        lines.append(SEPARATOR)
    return "\n".join(lines)


def format_top_wallets_json(records: Sequence[WalletActivityRecord]) -> str:
    """JSON array of ranked records in persistence shape, plus rank."""
    return json.dumps(
        [{"rank": rank, **record.to_dict()} for rank, record in enumerate(records, start=1)],
        indent=2,
    )
