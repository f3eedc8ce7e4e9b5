"""
Application settings.

Responsibilities:
- Read configuration from environment variables (.env supported).
- Validate required settings (contract address, RPC endpoint) and numeric ones.
- Expose a typed Settings dataclass to the monitor loop and entry points.
  CLI flags override env values through get_settings(**overrides).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from contract_monitor.config import env
from contract_monitor.core.exceptions import ConfigError

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class Settings:
    """Resolved monitor configuration."""

    contract_address: str
    rpc_url: str
    poll_interval_sec: float = env.DEFAULT_POLL_INTERVAL_SEC
    lookback_blocks: int = env.DEFAULT_LOOKBACK_BLOCKS
    hourly_window_blocks: int = env.DEFAULT_HOURLY_WINDOW_BLOCKS
    chunk_size: int | None = env.DEFAULT_CHUNK_SIZE  # None = one range per scan
    top_n: int = env.DEFAULT_TOP_N
    data_file: Path = Path(env.DEFAULT_DATA_FILE)
    rpc_timeout_sec: float = env.DEFAULT_RPC_TIMEOUT_SEC


def _parse_number(name: str, raw: str | None, cast: type, default: Any, minimum: float) -> Any:
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def validate_contract_address(address: str | None) -> str:
    """Return the address unchanged if it is a 0x-prefixed 20-byte hex string."""
    if not address:
        raise ConfigError("CONTRACT_ADDRESS must be set (env, .env file, or --contract)")
    if not EVM_ADDRESS_RE.match(address):
        raise ConfigError(f"CONTRACT_ADDRESS is not a valid EVM address: {address!r}")
    return address


def get_settings(**overrides: Any) -> Settings:
    """
    Return settings resolved from the environment, with non-None overrides applied.

    Raises:
        ConfigError: CONTRACT_ADDRESS or RPC_URL missing, or a numeric value is invalid.
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}

    contract = validate_contract_address(overrides.pop("contract_address", None) or env.get_contract_address())
    rpc_url = overrides.pop("rpc_url", None) or env.get_rpc_url()
    if not rpc_url:
        raise ConfigError("RPC_URL must be set (env, .env file, or --rpc-url)")

    chunk_size = _parse_number("CHUNK_SIZE", env.get_env("CHUNK_SIZE"), int, env.DEFAULT_CHUNK_SIZE, 0)
    settings = Settings(
        contract_address=contract,
        rpc_url=rpc_url,
        poll_interval_sec=_parse_number(
            "POLL_INTERVAL_SEC", env.get_env("POLL_INTERVAL_SEC"), float, env.DEFAULT_POLL_INTERVAL_SEC, 0
        ),
        lookback_blocks=_parse_number(
            "LOOKBACK_BLOCKS", env.get_env("LOOKBACK_BLOCKS"), int, env.DEFAULT_LOOKBACK_BLOCKS, 0
        ),
        hourly_window_blocks=_parse_number(
            "HOURLY_WINDOW_BLOCKS", env.get_env("HOURLY_WINDOW_BLOCKS"), int, env.DEFAULT_HOURLY_WINDOW_BLOCKS, 0
        ),
        chunk_size=chunk_size or None,
        top_n=_parse_number("TOP_N", env.get_env("TOP_N"), int, env.DEFAULT_TOP_N, 1),
        data_file=Path(env.get_env("DATA_FILE") or env.DEFAULT_DATA_FILE),
        rpc_timeout_sec=_parse_number(
            "RPC_TIMEOUT_SEC", env.get_env("RPC_TIMEOUT_SEC"), float, env.DEFAULT_RPC_TIMEOUT_SEC, 0.1
        ),
    )
    if "chunk_size" in overrides:
        # CLI --chunk-size 0 disables chunking, same as the env var
        overrides["chunk_size"] = overrides["chunk_size"] or None
    if "data_file" in overrides:
        overrides["data_file"] = Path(overrides["data_file"])
    if overrides:
        settings = replace(settings, **overrides)
        _check_ranges(settings)
    return settings


def _check_ranges(settings: Settings) -> None:
    """Same bounds as the env parsing, applied after CLI overrides."""
    checks = (
        ("POLL_INTERVAL_SEC", settings.poll_interval_sec, 0),
        ("LOOKBACK_BLOCKS", settings.lookback_blocks, 0),
        ("HOURLY_WINDOW_BLOCKS", settings.hourly_window_blocks, 0),
        ("CHUNK_SIZE", settings.chunk_size or 1, 1),
        ("TOP_N", settings.top_n, 1),
    )
    for name, value, minimum in checks:
        if value < minimum:
            raise ConfigError(f"{name} must be >= {minimum}, got {value}")
