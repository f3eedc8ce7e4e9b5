"""
Main entrypoint: continuous contract monitor with JSON persistence.

Every POLL_INTERVAL_SEC the monitor rescans the last LOOKBACK_BLOCKS blocks for
logs emitted by CONTRACT_ADDRESS, counts the sending wallet of each log, saves
the ledger to DATA_FILE and prints the top wallets. SIGINT/SIGTERM stop it
cleanly after the current range.

Env: CONTRACT_ADDRESS and RPC_URL (required), POLL_INTERVAL_SEC, LOOKBACK_BLOCKS,
CHUNK_SIZE, TOP_N, DATA_FILE, LOG_LEVEL, LOG_FORMAT. A .env file is honoured.

One-shot last-hour scan: python -m contract_monitor.tools.last_hour_scan
"""

from __future__ import annotations

import argparse
import sys

# Configure structured JSON logging before other imports that may log
from contract_monitor.monitor_logging import get_logger

logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Continuously rank the most active wallets calling a contract.",
    )
    parser.add_argument("--contract", dest="contract_address", help="Contract address (default: CONTRACT_ADDRESS)")
    parser.add_argument("--rpc-url", dest="rpc_url", help="JSON-RPC endpoint (default: RPC_URL)")
    parser.add_argument("--interval", dest="poll_interval_sec", type=float, help="Seconds between cycles (default: 30)")
    parser.add_argument("--lookback", dest="lookback_blocks", type=int, help="Blocks scanned per cycle (default: 1000)")
    parser.add_argument("--chunk-size", dest="chunk_size", type=int, help="Blocks per eth_getLogs call; 0 = no chunking (default: 20)")
    parser.add_argument("--top", dest="top_n", type=int, help="Wallets in the report (default: 5)")
    parser.add_argument("--data-file", dest="data_file", help="Ledger snapshot path (default: transaction_data.json)")
    parser.add_argument("--cycles", type=int, default=None, help="Stop after N cycles (default: run until stopped)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Resolve settings and run the continuous monitor until stopped."""
    from contract_monitor.agent_worker.runner import run_continuous_monitor
    from contract_monitor.config import get_settings
    from contract_monitor.core.exceptions import ConfigError

    args = build_parser().parse_args(argv)
    try:
        settings = get_settings(
            contract_address=args.contract_address,
            rpc_url=args.rpc_url,
            poll_interval_sec=args.poll_interval_sec,
            lookback_blocks=args.lookback_blocks,
            chunk_size=args.chunk_size,
            top_n=args.top_n,
            data_file=args.data_file,
        )
    except ConfigError as e:
        logger.error("main_config_error", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1

    logger.info("main_monitor_starting", contract_address=settings.contract_address)
    run_continuous_monitor(settings, max_cycles=args.cycles, as_json=args.json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
