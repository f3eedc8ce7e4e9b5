"""
Tests for MonitorLoop: continuous cycles, persistence, stop token, one-shot mode,
and the network readiness wait.
"""

from __future__ import annotations

import asyncio
import io
import json
from dataclasses import replace

import httpx
import pytest
from conftest import CONTRACT, WALLET_A, WALLET_B, WALLET_C, FakeNode, RecordingSleep

from contract_monitor.agent_worker.runner import MonitorLoop
from contract_monitor.core.exceptions import NetworkUnavailableError
from contract_monitor.evm_listener.rpc import NodeClient
from contract_monitor.ledger.store import JsonLedgerStore
from contract_monitor.ledger.wallet_ledger import WalletLedger


def _loop(settings, node, sleep, **kwargs) -> MonitorLoop:
    kwargs.setdefault("out", io.StringIO())
    return MonitorLoop(settings, node, kwargs.pop("ledger", WalletLedger()), sleep=sleep, **kwargs)


# --- Continuous mode ---


def test_cycle_scans_lookback_window_in_chunks(settings, fake_node, recording_sleep):
    """Interval is [latest - lookback, latest], partitioned by chunk_size."""
    fake_node.latest = 1000
    settings = replace(settings, lookback_blocks=50, chunk_size=20)
    loop = _loop(settings, fake_node, recording_sleep)
    summary = asyncio.run(loop.run_cycle())
    assert (summary.from_block, summary.to_block) == (950, 1000)
    assert fake_node.get_logs_calls == [(950, 969), (970, 989), (990, 1000)]


def test_window_clamped_at_genesis(settings, fake_node, recording_sleep):
    """Young chain: latest < lookback → interval starts at block 0."""
    fake_node.latest = 30
    loop = _loop(replace(settings, chunk_size=None), fake_node, recording_sleep)
    summary = asyncio.run(loop.run_cycle())
    assert fake_node.get_logs_calls == [(0, 30)]
    assert summary.from_block == 0


def test_continuous_persists_and_reports(settings, fake_node, recording_sleep):
    """Each cycle saves the ledger and prints the ranked report."""
    fake_node.add_tx(990, "0x01", WALLET_A)
    fake_node.add_tx(991, "0x02", WALLET_B)
    fake_node.add_tx(992, "0x03", WALLET_A)
    out = io.StringIO()
    store = JsonLedgerStore(settings.data_file)
    loop = _loop(settings, fake_node, recording_sleep, store=store, out=out)

    cycles = asyncio.run(loop.run_continuous(max_cycles=2))

    assert cycles == 2
    # window rescanned each cycle → counts accumulate per cycle
    assert loop.ledger.get(WALLET_A).transaction_count == 4
    saved = json.loads(settings.data_file.read_text(encoding="utf-8"))
    assert saved[WALLET_A]["transactionCount"] == 4
    assert saved[WALLET_B]["transactionCount"] == 2
    text = out.getvalue()
    assert text.count("Top 5 Wallets by Transaction Count:") == 2
    assert f"1. Address: {WALLET_A}" in text
    assert f"2. Address: {WALLET_B}" in text


def test_continuous_survives_failing_cycle(settings, fake_node, recording_sleep):
    """Cycle error (latest block unavailable) is logged; next cycle runs normally."""
    fake_node.add_tx(999, "0x01", WALLET_C)
    fake_node.fail_block_number = 1
    loop = _loop(settings, fake_node, recording_sleep)
    cycles = asyncio.run(loop.run_continuous(max_cycles=2))
    assert cycles == 2
    assert loop.ledger.get(WALLET_C).transaction_count == 1


def test_continuous_save_failure_keeps_running(settings, fake_node, recording_sleep, tmp_path):
    """Unwritable data file does not stop the loop; in-memory ledger stays intact."""
    fake_node.add_tx(999, "0x01", WALLET_A)
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    store = JsonLedgerStore(blocker / "data.json")
    loop = _loop(settings, fake_node, recording_sleep, store=store)
    assert asyncio.run(loop.run_continuous(max_cycles=2)) == 2
    assert loop.ledger.get(WALLET_A).transaction_count == 2


def test_stop_event_ends_loop(settings, fake_node, recording_sleep):
    """stop() during a scan → current cycle finishes its report, loop exits without sleeping again."""
    async def run() -> tuple[int, MonitorLoop]:
        loop = _loop(settings, fake_node, recording_sleep)
        fake_node.on_get_logs = lambda f, t: loop.stop()
        cycles = await loop.run_continuous()
        return cycles, loop

    cycles, loop = asyncio.run(run())
    assert cycles == 1
    assert len(fake_node.get_logs_calls) == 1
    assert "Top 5 Wallets" in loop._out.getvalue()


def test_stop_event_interrupts_sleep(settings, fake_node, recording_sleep):
    """A long poll interval is cut short by the stop event."""
    async def run() -> int:
        loop = _loop(replace(settings, poll_interval_sec=3600), fake_node, recording_sleep)
        task = asyncio.create_task(loop.run_continuous())
        await asyncio.sleep(0.05)
        loop.stop()
        return await asyncio.wait_for(task, timeout=5)

    assert asyncio.run(run()) == 1


def test_restored_ledger_keeps_counting(settings, fake_node, recording_sleep):
    """Ledger restored from the store continues from persisted counts."""
    store = JsonLedgerStore(settings.data_file)
    store.save({WALLET_B: {"address": WALLET_B, "transactionCount": 10, "lastUpdated": "2024-01-01T00:00:00.000Z"}})
    ledger = WalletLedger()
    ledger.restore(store.load())
    fake_node.add_tx(999, "0x01", WALLET_B)
    loop = _loop(settings, fake_node, recording_sleep, ledger=ledger, store=store)
    asyncio.run(loop.run_continuous(max_cycles=1))
    assert json.loads(settings.data_file.read_text())[WALLET_B]["transactionCount"] == 11


class _HangingNode(FakeNode):
    """eth_getLogs never answers, so a cycle is always in flight."""

    async def get_logs(self, address, from_block, to_block):
        self.get_logs_calls.append((from_block, to_block))
        await asyncio.sleep(3600)
        return []


def test_cancel_during_cycle_propagates(settings, recording_sleep):
    """Cancelling the task mid-scan raises CancelledError out of run_continuous."""
    node = _HangingNode()

    async def run() -> None:
        loop = _loop(replace(settings, poll_interval_sec=3600), node, recording_sleep)
        task = asyncio.create_task(loop.run_continuous())
        await asyncio.sleep(0.05)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run())
    assert len(node.get_logs_calls) == 1


# --- One-shot mode ---


def test_run_once_scans_hourly_window(settings, fake_node, recording_sleep):
    """One-shot: 120-block window in 20-block chunks, one report, no persistence."""
    fake_node.latest = 5000
    fake_node.add_tx(4900, "0x01", WALLET_A)
    fake_node.add_tx(4950, "0x02", WALLET_B)
    fake_node.add_tx(4990, "0x03", WALLET_B)
    fake_node.add_tx(4000, "0x04", WALLET_C)  # older than the window
    out = io.StringIO()
    loop = _loop(settings, fake_node, recording_sleep, out=out)

    top = asyncio.run(loop.run_once())

    assert [r.address for r in top] == [WALLET_B, WALLET_A]
    assert fake_node.get_logs_calls[0] == (4880, 4899)
    assert fake_node.get_logs_calls[-1] == (5000, 5000)
    assert len(fake_node.get_logs_calls) == 7
    assert fake_node.probe_calls == 1
    assert not settings.data_file.exists()
    assert out.getvalue().count("Address:") == 2


def test_readiness_timeout(settings, fake_node, recording_sleep):
    """Node never reachable → 3 readiness checks 2s apart, NetworkUnavailableError, no scan."""
    fake_node.reachable = False
    loop = _loop(settings, fake_node, recording_sleep)
    with pytest.raises(NetworkUnavailableError) as exc_info:
        asyncio.run(loop.run_once())
    assert exc_info.value.attempts == 3
    assert fake_node.probe_calls == 3
    assert recording_sleep.calls == [2.0, 2.0]
    assert fake_node.get_logs_calls == []


def test_run_once_empty_report(settings, fake_node, recording_sleep):
    """No logs in the window → 'No transactions recorded yet.'"""
    out = io.StringIO()
    loop = _loop(settings, fake_node, recording_sleep, out=out)
    assert asyncio.run(loop.run_once()) == []
    assert "No transactions recorded yet." in out.getvalue()


def test_run_once_latest_block_failure_is_fatal(settings, fake_node, recording_sleep):
    """Reachable node that cannot report its latest block → NetworkUnavailableError."""
    fake_node.fail_block_number = 1
    loop = _loop(settings, fake_node, recording_sleep)
    with pytest.raises(NetworkUnavailableError, match="latest block"):
        asyncio.run(loop.run_once())


def test_json_report(settings, fake_node, recording_sleep):
    """as_json prints ranked records as a JSON array."""
    fake_node.add_tx(999, "0x01", WALLET_A)
    out = io.StringIO()
    loop = _loop(settings, fake_node, recording_sleep, out=out, as_json=True)
    asyncio.run(loop.run_once())
    data = json.loads(out.getvalue())
    assert data[0]["rank"] == 1
    assert data[0]["address"] == WALLET_A
    assert data[0]["transactionCount"] == 1
    assert "lastUpdated" in data[0]


def _node_with_bad_tx() -> tuple[NodeClient, list]:
    """JSON-RPC node over MockTransport: latest 5000, one malformed tx in [4880, 4899]."""
    requests: list = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        method, params = body["method"], body["params"]
        if method == "eth_chainId":
            result = "0x1"
        elif method == "eth_blockNumber":
            result = hex(5000)
        elif method == "eth_getLogs":
            start = int(params[0]["fromBlock"], 16)
            tx_hash = {4880: "0xbad", 4900: "0xgood"}.get(start)
            result = [] if tx_hash is None else [
                {"address": CONTRACT, "transactionHash": tx_hash, "blockNumber": hex(start), "logIndex": "0x0"}
            ]
        elif params[0] == "0xbad":
            result = {"hash": "0xbad", "from": WALLET_B, "to": CONTRACT, "blockNumber": "0xzz"}
        else:
            result = {"hash": "0xgood", "from": WALLET_A, "to": CONTRACT, "blockNumber": hex(4900)}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NodeClient("http://node.test", client=client), requests


def test_run_once_skips_range_with_malformed_transaction(settings):
    """A malformed tx is retried like any node failure; only its sub-range is skipped."""
    node, requests = _node_with_bad_tx()
    sleep = RecordingSleep()
    out = io.StringIO()
    loop = _loop(settings, node, sleep, out=out)

    top = asyncio.run(loop.run_once())

    log_queries = [int(r["params"][0]["fromBlock"], 16) for r in requests if r["method"] == "eth_getLogs"]
    assert log_queries.count(4880) == 3
    assert sorted(set(log_queries)) == [4880, 4900, 4920, 4940, 4960, 4980, 5000]
    assert sleep.calls == [2.0, 2.0]
    assert [r.address for r in top] == [WALLET_A]
    assert out.getvalue().count("Address:") == 1
