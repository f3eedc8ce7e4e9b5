"""
EVM JSON-RPC node client.

Responsibilities:
- Speak JSON-RPC 2.0 over HTTP to an EVM node (eth_blockNumber, eth_getLogs,
  eth_getTransactionByHash, eth_chainId).
- Map transport errors, HTTP status errors, RPC error objects and malformed
  payloads to NodeQueryError so callers handle one failure type.
- Define NodeInterface, the minimal contract the scanner and monitor loop depend on.
"""

from __future__ import annotations

import itertools
from typing import Any, Protocol

import httpx

from contract_monitor.core.exceptions import NodeQueryError
from contract_monitor.evm_listener.models import LogEvent, TransactionInfo, hex_to_int
from contract_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0


class NodeInterface(Protocol):
    """What the scanner needs from a chain node. NodeClient is the HTTP implementation."""

    async def get_block_number(self) -> int: ...

    async def get_logs(self, address: str, from_block: int, to_block: int) -> list[LogEvent]: ...

    async def get_transaction(self, tx_hash: str) -> TransactionInfo | None: ...

    async def is_reachable(self) -> bool: ...


class NodeClient:
    """
    Async JSON-RPC client for one EVM endpoint.

    Owns an httpx.AsyncClient unless one is passed in (tests pass a client
    built on httpx.MockTransport). Use as an async context manager or call
    aclose() when done.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "NodeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform one JSON-RPC call and return its result; raise NodeQueryError on any failure."""
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._client.post(self._rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise NodeQueryError(
                f"{method}: HTTP {e.response.status_code}",
                method=method,
                code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise NodeQueryError(f"{method}: {type(e).__name__}: {e}", method=method) from e
        except ValueError as e:
            raise NodeQueryError(f"{method}: response is not JSON", method=method) from e

        if not isinstance(data, dict):
            raise NodeQueryError(f"{method}: unexpected response shape", method=method)
        if "error" in data and data["error"] is not None:
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            code = err.get("code") if isinstance(err, dict) else None
            raise NodeQueryError(f"{method}: RPC error {message} (code={code})", method=method, code=code)
        if "result" not in data:
            raise NodeQueryError(f"{method}: response has no result", method=method)
        return data["result"]

    async def get_block_number(self) -> int:
        result = await self.call("eth_blockNumber")
        try:
            number = hex_to_int(result)
        except (TypeError, ValueError):
            number = None
        if number is None:
            raise NodeQueryError(f"eth_blockNumber: bad result {result!r}", method="eth_blockNumber")
        return number

    async def get_logs(self, address: str, from_block: int, to_block: int) -> list[LogEvent]:
        """Logs emitted by address in [from_block, to_block]; removed (reorged) logs are dropped."""
        result = await self.call(
            "eth_getLogs",
            [{"address": address, "fromBlock": hex(from_block), "toBlock": hex(to_block)}],
        )
        if not isinstance(result, list):
            raise NodeQueryError("eth_getLogs: result is not a list", method="eth_getLogs")
        events: list[LogEvent] = []
        for item in result:
            if not isinstance(item, dict) or not item.get("transactionHash"):
                logger.debug("rpc_log_skipped_invalid", item=str(item)[:120])
                continue
            try:
                event = LogEvent.from_rpc_item(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("rpc_log_skipped_invalid", error=str(e))
                continue
            if not event.removed:
                events.append(event)
        return events

    async def get_transaction(self, tx_hash: str) -> TransactionInfo | None:
        """Transaction by hash, or None when the node does not know it."""
        result = await self.call("eth_getTransactionByHash", [tx_hash])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise NodeQueryError(
                "eth_getTransactionByHash: result is not an object",
                method="eth_getTransactionByHash",
            )
        try:
            return TransactionInfo.from_rpc_result(result)
        except (TypeError, ValueError) as e:
            raise NodeQueryError(
                f"eth_getTransactionByHash: malformed transaction {tx_hash}: {e}",
                method="eth_getTransactionByHash",
            ) from e

    async def get_chain_id(self) -> int | None:
        return hex_to_int(await self.call("eth_chainId"))

    async def is_reachable(self) -> bool:
        """Readiness probe: True when eth_chainId answers."""
        try:
            chain_id = await self.get_chain_id()
        except (NodeQueryError, ValueError) as e:
            logger.debug("rpc_probe_failed", error=str(e))
            return False
        logger.debug("rpc_probe_ok", chain_id=chain_id)
        return True
