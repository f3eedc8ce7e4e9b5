"""
Application-level exceptions.

Only ConfigError and NetworkUnavailableError are allowed to stop the process.
NodeQueryError is contained per block range by the scanner's retry policy;
PersistenceError is logged and the in-memory ledger stays authoritative.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for all contract monitor errors."""


class ConfigError(MonitorError):
    """Mandatory configuration is missing or invalid (fatal at startup)."""


class NetworkUnavailableError(MonitorError):
    """Node stayed unreachable after all readiness probes."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class NodeQueryError(MonitorError):
    """A JSON-RPC call failed: transport error, HTTP status, RPC error object, or bad payload."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.code = code


class PersistenceError(MonitorError):
    """Ledger snapshot could not be read or written."""
