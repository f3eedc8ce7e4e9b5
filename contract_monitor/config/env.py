"""
Environment variable loading for Contract Monitor.

- CONTRACT_ADDRESS: contract whose logs are monitored (required)
- RPC_URL: EVM JSON-RPC endpoint (required)
- POLL_INTERVAL_SEC, LOOKBACK_BLOCKS, HOURLY_WINDOW_BLOCKS, CHUNK_SIZE, TOP_N,
  DATA_FILE, RPC_TIMEOUT_SEC: optional tuning, see defaults below
- Loads .env from the project root (and the current directory) when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is contract_monitor/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_POLL_INTERVAL_SEC = 30.0
# Continuous mode rescans this many recent blocks every cycle
DEFAULT_LOOKBACK_BLOCKS = 1000
# ~1 hour of blocks at a 30s block time
DEFAULT_HOURLY_WINDOW_BLOCKS = 120
DEFAULT_CHUNK_SIZE = 20
DEFAULT_TOP_N = 5
DEFAULT_DATA_FILE = "transaction_data.json"
DEFAULT_RPC_TIMEOUT_SEC = 30.0


def load_monitor_env() -> None:
    """Load .env from project root, then from the working directory. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)
    load_dotenv()


def get_env(name: str) -> str | None:
    """Return a stripped env value, or None when unset/blank."""
    load_monitor_env()
    raw = (os.getenv(name) or "").strip()
    return raw or None


def get_contract_address() -> str | None:
    return get_env("CONTRACT_ADDRESS")


def get_rpc_url() -> str | None:
    return get_env("RPC_URL")


def mask_rpc_url(url: str) -> str:
    """Hide API keys embedded in provider URLs (path token or api-key query)."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    scheme, sep, rest = url.partition("://")
    if not sep:
        return url
    host, slash, path = rest.partition("/")
    if slash and len(path) >= 16:
        return f"{scheme}://{host}/***"
    return url
