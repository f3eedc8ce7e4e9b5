# Block-range scanning: partitioning, per-range retry, ledger feeding.

from contract_monitor.scanner.range_scanner import (
    RangeResult,
    RangeScanner,
    RetryPolicy,
    ScanSummary,
    partition,
)

__all__ = [
    "RangeResult",
    "RangeScanner",
    "RetryPolicy",
    "ScanSummary",
    "partition",
]
