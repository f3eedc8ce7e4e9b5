"""
JSON snapshot store for the wallet ledger (continuous mode only).

The document is a flat object mapping address -> {address, transactionCount,
lastUpdated}, pretty-printed and overwritten wholesale on every save.
read()/write() raise PersistenceError; load()/save() log it and carry on.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from contract_monitor.core.exceptions import PersistenceError
from contract_monitor.monitor_logging import get_logger

logger = get_logger(__name__)


class JsonLedgerStore:
    """Durable ledger snapshot at a single JSON file path."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> dict[str, Any]:
        """Return the stored snapshot; {} if the file does not exist."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"cannot read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise PersistenceError(f"malformed JSON in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(
                f"{self.path} must hold a JSON object, got {type(data).__name__}"
            )
        return data

    def write(self, snapshot: dict[str, Any]) -> None:
        """Write snapshot atomically (temp file in the same directory, then rename)."""
        directory = self.path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"cannot write {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def load(self) -> dict[str, Any]:
        """Snapshot for WalletLedger.restore(); {} when missing or unreadable."""
        if not self.path.exists():
            logger.debug("store_load_missing", path=str(self.path))
            return {}
        try:
            data = self.read()
        except PersistenceError as e:
            logger.error("store_load_failed", path=str(self.path), error=str(e))
            return {}
        logger.info("store_loaded", path=str(self.path), wallets=len(data))
        return data

    def save(self, snapshot: dict[str, Any]) -> bool:
        """Persist snapshot; False (logged) on failure."""
        try:
            self.write(snapshot)
        except PersistenceError as e:
            logger.error("store_save_failed", path=str(self.path), error=str(e))
            return False
        logger.debug("store_saved", path=str(self.path), wallets=len(snapshot))
        return True
