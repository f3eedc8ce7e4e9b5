"""
Core utilities — shared exceptions and cross-cutting concerns.

Provides the error taxonomy used across the node client, scanner,
ledger store, and monitor loop.
"""

from contract_monitor.core.exceptions import (
    ConfigError,
    MonitorError,
    NetworkUnavailableError,
    NodeQueryError,
    PersistenceError,
)

__all__ = [
    "ConfigError",
    "MonitorError",
    "NetworkUnavailableError",
    "NodeQueryError",
    "PersistenceError",
]
