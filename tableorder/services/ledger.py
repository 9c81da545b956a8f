"""
Excel Order Ledger with Concurrency Control

Append-only Excel copy of every order, written by the Celery worker.
Several workers may append at once, so every read-modify-write of the
workbook happens under a file lock.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from tableorder.core.config import get_settings
from tableorder.services.export import EXPORT_COLUMNS

logger = logging.getLogger(__name__)

LEDGER_COLUMNS = EXPORT_COLUMNS + ["exported_at"]


class OrderLedger:
    """Thread- and process-safe Excel ledger."""

    def __init__(self, path: Optional[Path] = None, lock_timeout: Optional[int] = None):
        settings = get_settings()
        self.path = Path(path or settings.ledger_path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.ledger_lock_timeout

    def _ensure_data_dir(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.path.parent}")

    def _load(self) -> pd.DataFrame:
        if self.path.exists():
            return pd.read_excel(self.path, engine="openpyxl")
        return pd.DataFrame(columns=LEDGER_COLUMNS)

    def append_order(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Append one order record.

        Returns a result dict; a lock timeout is reported, not raised, so the
        calling task can decide whether to retry.
        """
        self._ensure_data_dir()

        order_id = record.get("order_id")
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = self._load()
                export_time = datetime.now().isoformat()
                row = {column: record.get(column) for column in EXPORT_COLUMNS}
                row["exported_at"] = export_time

                if df.empty:
                    df = pd.DataFrame([row], columns=LEDGER_COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([row])], ignore_index=True)
                df.to_excel(str(self.path), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} appended to ledger")
                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Ledger lock timeout for Order #{order_id}")

        return result

    def read_all(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with FileLock(str(self.lock_path), timeout=self.lock_timeout):
            df = self._load()
        return df.to_dict("records")

    def clear(self) -> bool:
        removed = False
        for f in (self.path, self.lock_path):
            if f.exists():
                f.unlink()
                removed = True
        if removed:
            logger.info("Order ledger cleared")
        return removed
