"""
Structured logging for Contract Monitor.

JSON logs with timestamp, event_type, and block-range context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from contract_monitor.monitor_logging.logger import get_logger

__all__ = ["get_logger"]
