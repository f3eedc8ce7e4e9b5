"""
Structured logging for the monitor: event_type, block range, contract address.

structlog with ISO timestamps and the log level on every entry. Modules call
get_logger(__name__) and pass the event_type as the first argument, with
from_block / to_block / address as keyword context where relevant.

LOG_LEVEL and LOG_FORMAT are read from the environment, falling back to the
project .env (and one in the working directory), so a .env file configures
logging the same way it configures the monitor.

Uses only Python stdlib logging, structlog and python-dotenv; no contract_monitor
imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, TextIO

import structlog
from dotenv import dotenv_values, find_dotenv

# Same .env as config/env.py: <root>/contract_monitor/monitor_logging/ -> <root>
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "json"


def resolve_log_settings(env_path: Path | str | None = None) -> tuple[int, str]:
    """
    Return (level, format) for LOG_LEVEL / LOG_FORMAT.

    Process env wins over the project .env, which wins over a .env in the
    working directory. Unknown level names fall back to INFO. Does not modify
    os.environ.
    """
    values: dict[str, str | None] = {}
    cwd_env = find_dotenv(usecwd=True)
    if cwd_env:
        values.update(dotenv_values(cwd_env))
    values.update(dotenv_values(env_path or _ENV_PATH))
    values.update(os.environ)

    level_name = (values.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    fmt = (values.get("LOG_FORMAT") or DEFAULT_LOG_FORMAT).strip().lower()
    return level, fmt


def _rename_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's 'event' key becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _add_block_range(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """from_block + to_block → block_range "[from, to]" for grepping one range across retries."""
    if "from_block" in event_dict and "to_block" in event_dict and "block_range" not in event_dict:
        event_dict["block_range"] = f"[{event_dict['from_block']}, {event_dict['to_block']}]"
    return event_dict


def configure_structlog(
    level: int | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog; level and fmt default to resolve_log_settings()."""
    if level is None or fmt is None:
        env_level, env_fmt = resolve_log_settings()
        level = env_level if level is None else level
        fmt = env_fmt if fmt is None else fmt
    # Logs go to stderr so the ranked report on stdout stays clean
    stream = stream or sys.stderr

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_block_range,
        _rename_event,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("scanner_range_done", from_block=100, to_block=119, logs=4)

    JSON output: {"event_type": "scanner_range_done", "from_block": 100, "to_block": 119,
    "block_range": "[100, 119]", "logs": 4, "level": "info", "logger": "...", "timestamp": "..."}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_contract(contract_address: str) -> structlog.BoundLogger:
    """
    Tag the current context with contract_address and return a bound logger.

    The address goes into structlog contextvars, so log lines from the scanner
    and node client running in this context carry it too.
    """
    structlog.contextvars.bind_contextvars(contract_address=contract_address)
    return get_logger("contract_monitor").bind(contract_address=contract_address)
