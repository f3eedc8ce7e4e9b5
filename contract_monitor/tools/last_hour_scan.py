"""
One-shot scan: most active wallets of a contract over roughly the last hour.

How to run:
    From project root (with .env configured):
        python -m contract_monitor.tools.last_hour_scan
        python -m contract_monitor.tools.last_hour_scan --window 240 --chunk-size 40 --json

Required env vars:
    CONTRACT_ADDRESS   contract whose logs are counted
    RPC_URL            EVM JSON-RPC endpoint

Waits for the node (3 probes, 2s apart), scans [latest - window, latest] in
chunks with per-chunk retries, prints the ranking once and exits. Nothing is
written to disk.

Exit status: 0 on success, 1 on configuration error or unreachable node.
"""

from __future__ import annotations

import argparse
import sys

from contract_monitor.agent_worker.runner import run_last_hour_scan
from contract_monitor.config import get_settings
from contract_monitor.core.exceptions import ConfigError, NetworkUnavailableError
from contract_monitor.monitor_logging import get_logger

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Rank the most active wallets of a contract over the last ~hour of blocks.",
    )
    parser.add_argument("--contract", dest="contract_address", help="Contract address (default: CONTRACT_ADDRESS)")
    parser.add_argument("--rpc-url", dest="rpc_url", help="JSON-RPC endpoint (default: RPC_URL)")
    parser.add_argument("--window", dest="hourly_window_blocks", type=int, help="Blocks to scan back from latest (default: 120)")
    parser.add_argument("--chunk-size", dest="chunk_size", type=int, help="Blocks per eth_getLogs call; 0 = no chunking (default: 20)")
    parser.add_argument("--top", dest="top_n", type=int, help="Wallets in the report (default: 5)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args(argv)

    try:
        settings = get_settings(
            contract_address=args.contract_address,
            rpc_url=args.rpc_url,
            hourly_window_blocks=args.hourly_window_blocks,
            chunk_size=args.chunk_size,
            top_n=args.top_n,
        )
    except ConfigError as e:
        logger.error("last_hour_scan_config_error", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1

    try:
        run_last_hour_scan(settings, as_json=args.json)
    except NetworkUnavailableError as e:
        logger.error("last_hour_scan_network_unavailable", error=str(e), attempts=e.attempts)
        print("ERROR:", e, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
