"""
Block-range log scanner.

Splits a block interval into bounded sub-ranges, fetches the contract's logs
for each sub-range, resolves each log to its transaction sender, and feeds the
senders into the WalletLedger. Sub-ranges run sequentially. A failing sub-range
is retried a fixed number of times and then skipped; it never aborts the scan.

Senders of a sub-range are committed to the ledger only after every lookup in
that sub-range succeeded, so a failed attempt leaves no partial counts and a
retry cannot double count.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from contract_monitor.core.exceptions import NodeQueryError
from contract_monitor.evm_listener.models import BlockRange, TransactionInfo
from contract_monitor.evm_listener.rpc import NodeInterface
from contract_monitor.ledger.wallet_ledger import WalletLedger
from contract_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SEC = 2.0

SleepFn = Callable[[float], Awaitable[None]]


def partition(from_block: int, to_block: int, chunk_size: int) -> list[BlockRange]:
    """
    Split [from_block, to_block] into consecutive ranges of at most chunk_size blocks.

    >>> partition(100, 149, 20)
    [BlockRange(from_block=100, to_block=119), BlockRange(from_block=120, to_block=139), BlockRange(from_block=140, to_block=149)]
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if from_block > to_block:
        raise ValueError(f"from_block ({from_block}) must be <= to_block ({to_block})")
    return [
        BlockRange(start, min(start + chunk_size - 1, to_block))
        for start in range(from_block, to_block + 1, chunk_size)
    ]


@dataclass(frozen=True)
class RetryPolicy:
    """Per-range retry: max_attempts total tries, delay_sec * backoff**n between them."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_sec: float = DEFAULT_RETRY_DELAY_SEC
    backoff: float = 1.0  # 1.0 = fixed delay
    max_delay_sec: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_sec < 0:
            raise ValueError("delay_sec must be >= 0")

    def delay_after(self, attempt: int) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        return min(self.delay_sec * (self.backoff ** (attempt - 1)), self.max_delay_sec)


@dataclass
class RangeResult:
    """Outcome of one sub-range: succeeded, or exhausted with last_error."""

    block_range: BlockRange
    attempts: int
    ok: bool
    logs: int = 0
    senders: int = 0
    last_error: str | None = None


@dataclass
class ScanSummary:
    """Totals for one scan() call."""

    from_block: int
    to_block: int
    ranges: int = 0
    ranges_ok: int = 0
    skipped: list[BlockRange] = field(default_factory=list)
    logs: int = 0
    senders: int = 0
    stopped: bool = False

    def add(self, result: RangeResult) -> None:
        self.ranges += 1
        if result.ok:
            self.ranges_ok += 1
            self.logs += result.logs
            self.senders += result.senders
        else:
            self.skipped.append(result.block_range)


class RangeScanner:
    """
    Scans one contract's logs into a WalletLedger.

    chunk_size=None scans each interval as a single range (no partitioning).
    sleep is injectable so tests can record retry spacing without waiting.
    """

    def __init__(
        self,
        node: NodeInterface,
        contract_address: str,
        ledger: WalletLedger,
        *,
        chunk_size: int | None = 20,
        retry: RetryPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        if not contract_address.strip():
            raise ValueError("contract_address must be non-empty")
        if chunk_size is not None and chunk_size <= 0:
            raise ValueError("chunk_size must be positive or None")
        self._node = node
        self._contract = contract_address.strip()
        self._ledger = ledger
        self._chunk_size = chunk_size
        self._retry = retry or RetryPolicy()
        self._sleep = sleep
        self._stop_event = stop_event

    def ranges_for(self, from_block: int, to_block: int) -> list[BlockRange]:
        if self._chunk_size is None:
            return [BlockRange(from_block, to_block)]
        return partition(from_block, to_block, self._chunk_size)

    async def scan_range(self, block_range: BlockRange) -> tuple[int, int]:
        """
        Fetch logs in block_range, resolve senders, commit them to the ledger.

        Returns (log_count, observed_sender_count). Raises NodeQueryError on
        any node failure; the ledger is untouched in that case.
        """
        events = await self._node.get_logs(
            self._contract, block_range.from_block, block_range.to_block
        )
        txs: dict[str, TransactionInfo | None] = {}
        senders: list[str] = []
        for event in events:
            tx_hash = event.transaction_hash
            if tx_hash not in txs:
                txs[tx_hash] = await self._node.get_transaction(tx_hash)
            tx = txs[tx_hash]
            if tx is None or not tx.sender:
                logger.debug("scanner_log_without_sender", tx_hash=tx_hash)
                continue
            senders.append(tx.sender)
        for sender in senders:
            self._ledger.observe(sender)
        return len(events), len(senders)

    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _pause(self, delay: float) -> None:
        """Sleep between attempts; returns early when the stop event is set."""
        if self._stop_event is None:
            await self._sleep(delay)
            return
        if self._stop_event.is_set():
            return
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, stopper):
                if not task.done():
                    task.cancel()

    async def scan_range_with_retry(self, block_range: BlockRange) -> RangeResult:
        """Run scan_range up to max_attempts times; never raises NodeQueryError."""
        policy = self._retry
        last_error: str | None = None
        for attempt in range(1, policy.max_attempts + 1):
            try:
                logs, senders = await self.scan_range(block_range)
            except NodeQueryError as e:
                last_error = str(e)
                logger.warning(
                    "scanner_range_retry",
                    from_block=block_range.from_block,
                    to_block=block_range.to_block,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    error=last_error,
                )
                if attempt < policy.max_attempts:
                    await self._pause(policy.delay_after(attempt))
                    if self._stopping():
                        logger.info(
                            "scanner_range_retry_stopped",
                            from_block=block_range.from_block,
                            to_block=block_range.to_block,
                            attempt=attempt,
                        )
                        return RangeResult(block_range, attempt, False, last_error=last_error)
                continue
            logger.debug(
                "scanner_range_done",
                from_block=block_range.from_block,
                to_block=block_range.to_block,
                logs=logs,
                senders=senders,
                attempt=attempt,
            )
            return RangeResult(block_range, attempt, True, logs=logs, senders=senders)

        logger.error(
            "scanner_range_give_up",
            from_block=block_range.from_block,
            to_block=block_range.to_block,
            attempts=policy.max_attempts,
            error=last_error,
        )
        return RangeResult(block_range, policy.max_attempts, False, last_error=last_error)

    async def scan(self, from_block: int, to_block: int) -> ScanSummary:
        """Scan [from_block, to_block] range by range; stops early if the stop event is set."""
        summary = ScanSummary(from_block=from_block, to_block=to_block)
        for block_range in self.ranges_for(from_block, to_block):
            if self._stopping():
                summary.stopped = True
                break
            summary.add(await self.scan_range_with_retry(block_range))
        logger.info(
            "scanner_scan_done",
            from_block=from_block,
            to_block=to_block,
            ranges=summary.ranges,
            ranges_ok=summary.ranges_ok,
            ranges_skipped=len(summary.skipped),
            logs=summary.logs,
            senders=summary.senders,
            stopped=summary.stopped,
        )
        return summary
