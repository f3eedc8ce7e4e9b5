"""
Monitor runner — scan loop and process lifecycle.

- MonitorLoop.run_continuous(): scan the lookback window → save ledger → print
  report → wait poll interval → repeat, until the stop event is set.
- MonitorLoop.run_once(): wait for the node, scan the last ~hour in chunks,
  print one report, done. Memory-only ledger.
- run_continuous_monitor() / run_last_hour_scan(): wire settings, node client,
  ledger, store and signal handlers for the entry points.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any, Callable, TextIO

from contract_monitor.agent_worker.report import format_top_wallets, format_top_wallets_json
from contract_monitor.config.env import mask_rpc_url
from contract_monitor.config.settings import Settings
from contract_monitor.core.exceptions import NetworkUnavailableError, NodeQueryError
from contract_monitor.evm_listener.models import BlockRange
from contract_monitor.evm_listener.rpc import NodeClient, NodeInterface
from contract_monitor.ledger.store import JsonLedgerStore
from contract_monitor.ledger.wallet_ledger import WalletActivityRecord, WalletLedger
from contract_monitor.monitor_logging.logger import bind_contract
from contract_monitor.scanner.range_scanner import RangeScanner, RetryPolicy, ScanSummary, SleepFn

DEFAULT_PROBE_ATTEMPTS = 3
DEFAULT_PROBE_DELAY_SEC = 2.0


class MonitorLoop:
    """
    Drives RangeScanner over the most recent blocks, in either mode.

    The ledger is passed in and owned by the caller; store is only used by
    continuous mode. stop_event is checked before each cycle, between
    sub-ranges, and while sleeping between cycles.
    """

    def __init__(
        self,
        settings: Settings,
        node: NodeInterface,
        ledger: WalletLedger,
        *,
        store: JsonLedgerStore | None = None,
        stop_event: asyncio.Event | None = None,
        retry: RetryPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
        probe_attempts: int = DEFAULT_PROBE_ATTEMPTS,
        probe_delay_sec: float = DEFAULT_PROBE_DELAY_SEC,
        as_json: bool = False,
        out: TextIO | None = None,
    ) -> None:
        self.settings = settings
        self.ledger = ledger
        self.store = store
        self.stop_event = stop_event or asyncio.Event()
        self._node = node
        self._sleep = sleep
        self._probe_attempts = probe_attempts
        self._probe_delay_sec = probe_delay_sec
        self._as_json = as_json
        self._out = out
        self._log = bind_contract(settings.contract_address)
        self.scanner = RangeScanner(
            node,
            settings.contract_address,
            ledger,
            chunk_size=settings.chunk_size,
            retry=retry,
            sleep=sleep,
            stop_event=self.stop_event,
        )

    def stop(self) -> None:
        """Request shutdown; the loop exits at its next check."""
        self.stop_event.set()

    async def latest_window(self, window_blocks: int) -> BlockRange:
        """[latest - window_blocks, latest], clamped at block 0."""
        latest = await self._node.get_block_number()
        return BlockRange(max(0, latest - window_blocks), latest)

    def report(self) -> list[WalletActivityRecord]:
        """Print the top-N wallets and return them."""
        top = self.ledger.top_n(self.settings.top_n)
        if self._as_json:
            text = format_top_wallets_json(top)
        else:
            text = format_top_wallets(top, limit=self.settings.top_n)
        print(text, file=self._out or sys.stdout, flush=True)
        return top

    # -------------------------------------------------------------------------
    # Continuous mode
    # -------------------------------------------------------------------------
    async def run_cycle(self) -> ScanSummary:
        """One continuous-mode cycle: scan lookback window, persist, report."""
        window = await self.latest_window(self.settings.lookback_blocks)
        summary = await self.scanner.scan(window.from_block, window.to_block)
        if self.store is not None:
            self.store.save(self.ledger.snapshot())
        self.report()
        return summary

    async def _wait_poll_interval(self) -> None:
        try:
            await asyncio.wait_for(
                self.stop_event.wait(), timeout=self.settings.poll_interval_sec
            )
        except asyncio.TimeoutError:
            pass

    async def run_continuous(self, max_cycles: int | None = None) -> int:
        """
        Run cycles until the stop event is set (or max_cycles reached).

        A failing cycle is logged and retried after the poll interval; nothing
        short of the stop event ends the loop. Returns the number of cycles run.
        """
        self._log.info(
            "monitor_started",
            mode="continuous",
            poll_interval_sec=self.settings.poll_interval_sec,
            lookback_blocks=self.settings.lookback_blocks,
            chunk_size=self.settings.chunk_size,
        )
        cycles = 0
        while not self.stop_event.is_set():
            cycles += 1
            try:
                summary = await self.run_cycle()
                self._log.info(
                    "monitor_cycle_done",
                    cycle=cycles,
                    from_block=summary.from_block,
                    to_block=summary.to_block,
                    ranges_skipped=len(summary.skipped),
                    wallets=len(self.ledger),
                )
            except asyncio.CancelledError:
                self._log.info("monitor_cancelled", cycle=cycles)
                raise
            except Exception as e:
                self._log.exception("monitor_cycle_failed", cycle=cycles, error=str(e))
            if max_cycles is not None and cycles >= max_cycles:
                break
            if self.stop_event.is_set():
                break
            await self._wait_poll_interval()
        self._log.info("monitor_stopped", cycles=cycles)
        return cycles

    # -------------------------------------------------------------------------
    # One-shot mode
    # -------------------------------------------------------------------------
    async def wait_for_network(self) -> None:
        """Probe the node up to probe_attempts times; raise NetworkUnavailableError if all fail."""
        for attempt in range(1, self._probe_attempts + 1):
            if await self._node.is_reachable():
                self._log.info("monitor_network_ready", attempt=attempt)
                return
            self._log.warning(
                "monitor_network_unreachable",
                attempt=attempt,
                max_attempts=self._probe_attempts,
            )
            if attempt < self._probe_attempts:
                await self._sleep(self._probe_delay_sec)
        raise NetworkUnavailableError(
            f"node unreachable after {self._probe_attempts} attempts",
            attempts=self._probe_attempts,
        )

    async def run_once(self) -> list[WalletActivityRecord]:
        """Readiness wait → chunked scan of the hourly window → one report."""
        await self.wait_for_network()
        try:
            window = await self.latest_window(self.settings.hourly_window_blocks)
        except NodeQueryError as e:
            raise NetworkUnavailableError(f"cannot read latest block: {e}") from e
        self._log.info(
            "monitor_started",
            mode="once",
            from_block=window.from_block,
            to_block=window.to_block,
            chunk_size=self.settings.chunk_size,
        )
        await self.scanner.scan(window.from_block, window.to_block)
        top = self.report()
        self._log.info("monitor_once_done", wallets=len(self.ledger), reported=len(top))
        return top


def _install_signal_handlers(stop_event: asyncio.Event, log: Any) -> None:
    """SIGINT/SIGTERM set the stop event (where the event loop supports it)."""
    loop = asyncio.get_running_loop()

    def _handle(sig_name: str) -> Callable[[], None]:
        def handler() -> None:
            log.info("monitor_shutdown_signal", signal=sig_name)
            stop_event.set()
        return handler

    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, _handle(sig.name))
        except (NotImplementedError, RuntimeError, ValueError):
            # Not main thread, or platform without loop signal support
            pass


async def _continuous_main(settings: Settings, max_cycles: int | None, as_json: bool) -> int:
    stop_event = asyncio.Event()
    log = bind_contract(settings.contract_address)
    _install_signal_handlers(stop_event, log)
    log.info("monitor_config", rpc_url=mask_rpc_url(settings.rpc_url), data_file=str(settings.data_file))

    store = JsonLedgerStore(settings.data_file)
    ledger = WalletLedger()
    ledger.restore(store.load())
    async with NodeClient(settings.rpc_url, timeout_sec=settings.rpc_timeout_sec) as node:
        loop = MonitorLoop(settings, node, ledger, store=store, stop_event=stop_event, as_json=as_json)
        return await loop.run_continuous(max_cycles=max_cycles)


async def _once_main(settings: Settings, as_json: bool) -> list[WalletActivityRecord]:
    log = bind_contract(settings.contract_address)
    log.info("monitor_config", rpc_url=mask_rpc_url(settings.rpc_url))
    async with NodeClient(settings.rpc_url, timeout_sec=settings.rpc_timeout_sec) as node:
        loop = MonitorLoop(settings, node, WalletLedger(), as_json=as_json)
        return await loop.run_once()


def run_continuous_monitor(
    settings: Settings,
    *,
    max_cycles: int | None = None,
    as_json: bool = False,
) -> int:
    """Blocking continuous monitor with persistence; returns cycles run."""
    try:
        return asyncio.run(_continuous_main(settings, max_cycles, as_json))
    except KeyboardInterrupt:
        bind_contract(settings.contract_address).info("monitor_keyboard_interrupt")
        return 0


def run_last_hour_scan(settings: Settings, *, as_json: bool = False) -> list[WalletActivityRecord]:
    """Blocking one-shot scan; raises NetworkUnavailableError if the node never answers."""
    return asyncio.run(_once_main(settings, as_json))
