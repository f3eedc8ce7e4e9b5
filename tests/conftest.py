"""
Pytest fixtures for Contract Monitor tests.

FakeNode is an in-memory NodeInterface: logs are registered per block, and
selected block ranges / tx hashes can be made to fail a number of times.
Sleeps are recorded instead of awaited so retry spacing is checked instantly.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from contract_monitor.config.settings import Settings
from contract_monitor.core.exceptions import NodeQueryError
from contract_monitor.evm_listener.models import LogEvent, TransactionInfo

CONTRACT = "0x1111111111111111111111111111111111111111"
WALLET_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
WALLET_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
WALLET_C = "0xcccccccccccccccccccccccccccccccccccccccc"


class FakeNode:
    """In-memory node. fail_ranges / fail_txs map a key to remaining failures (None = always)."""

    def __init__(self, latest: int = 1000, reachable: bool = True) -> None:
        self.latest = latest
        self.reachable = reachable
        self.logs: list[tuple[int, str]] = []
        self.txs: dict[str, TransactionInfo] = {}
        self.fail_ranges: dict[tuple[int, int], int | None] = {}
        self.fail_txs: dict[str, int | None] = {}
        self.fail_block_number = 0
        self.get_logs_calls: list[tuple[int, int]] = []
        self.get_tx_calls: list[str] = []
        self.probe_calls = 0
        self.on_get_logs = None

    def add_tx(self, block: int, tx_hash: str, sender: str | None, log_count: int = 1) -> None:
        for _ in range(log_count):
            self.logs.append((block, tx_hash))
        self.txs[tx_hash] = TransactionInfo(tx_hash=tx_hash, sender=sender, to=CONTRACT, block_number=block)

    @staticmethod
    def _should_fail(table: dict, key) -> bool:
        if key not in table:
            return False
        remaining = table[key]
        if remaining is None:
            return True
        if remaining <= 0:
            return False
        table[key] = remaining - 1
        return True

    async def get_block_number(self) -> int:
        if self.fail_block_number > 0:
            self.fail_block_number -= 1
            raise NodeQueryError("eth_blockNumber: connection refused", method="eth_blockNumber")
        return self.latest

    async def get_logs(self, address: str, from_block: int, to_block: int) -> list[LogEvent]:
        self.get_logs_calls.append((from_block, to_block))
        if self.on_get_logs is not None:
            self.on_get_logs(from_block, to_block)
        if self._should_fail(self.fail_ranges, (from_block, to_block)):
            raise NodeQueryError("eth_getLogs: rate limited", method="eth_getLogs", code=429)
        return [
            LogEvent(address=address, transaction_hash=h, block_number=b, log_index=i)
            for i, (b, h) in enumerate(self.logs)
            if from_block <= b <= to_block
        ]

    async def get_transaction(self, tx_hash: str) -> TransactionInfo | None:
        self.get_tx_calls.append(tx_hash)
        if self._should_fail(self.fail_txs, tx_hash):
            raise NodeQueryError("eth_getTransactionByHash: timeout", method="eth_getTransactionByHash")
        return self.txs.get(tx_hash)

    async def is_reachable(self) -> bool:
        self.probe_calls += 1
        return self.reachable


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class TickClock:
    """Deterministic ISO timestamps: 2024-01-01T00:00:00.000Z, then +1s per call."""

    def __init__(self) -> None:
        self.ticks = 0

    def __call__(self) -> str:
        value = f"2024-01-01T00:{self.ticks // 60:02d}:{self.ticks % 60:02d}.000Z"
        self.ticks += 1
        return value


@pytest.fixture
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> TickClock:
    return TickClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with short poll interval and a temp data file."""
    return Settings(
        contract_address=CONTRACT,
        rpc_url="http://node.test",
        poll_interval_sec=0.01,
        lookback_blocks=1000,
        hourly_window_blocks=120,
        chunk_size=20,
        top_n=5,
        data_file=tmp_path / "transaction_data.json",
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all monitor env vars so get_settings sees only what the test sets."""
    for name in (
        "CONTRACT_ADDRESS",
        "RPC_URL",
        "POLL_INTERVAL_SEC",
        "LOOKBACK_BLOCKS",
        "HOURLY_WINDOW_BLOCKS",
        "CHUNK_SIZE",
        "TOP_N",
        "DATA_FILE",
        "RPC_TIMEOUT_SEC",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.setattr("contract_monitor.config.env.load_monitor_env", lambda: None)
    return monkeypatch
