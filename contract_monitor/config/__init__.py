"""
Configuration management for Contract Monitor.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for all monitor configuration.
"""

from contract_monitor.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
