"""
Local Store - Alignment Chart
alignment_chart/session/local_store.py

Durable single-table store of StoredPlacement records keyed by placement id,
backed by SQLite. Each record is kept as a JSON document next to its id.

All operations are async (SQLite work runs in a worker thread) and queue
behind initialize(); concurrent initialize() calls share one open.
replace_all() clears and re-inserts inside one transaction, so a failed
insert leaves the previous snapshot untouched.
"""

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterable, List, Optional

from alignment_chart.config import settings
from alignment_chart.core.exceptions import PersistenceError
from alignment_chart.core.logging import get_logger
from alignment_chart.models.placement import StoredPlacement

logger = get_logger(__name__)


class LocalStore:
    """Async facade over a SQLite table of placement records."""

    def __init__(
        self,
        path: Optional[str] = None,
        table: Optional[str] = None,
        schema_version: Optional[int] = None,
    ):
        self.path = Path(path or settings.LOCAL_STORE_PATH)
        self.table = table or settings.LOCAL_STORE_TABLE
        self.schema_version = schema_version or settings.LOCAL_STORE_SCHEMA_VERSION
        self._ready = False
        self._init_future: Optional[asyncio.Future] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Open a connection per operation; commit on success, roll back on error."""
        conn = sqlite3.connect(self.path, timeout=5.0)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self.table} ("
                " id TEXT PRIMARY KEY,"
                " data TEXT NOT NULL,"
                " timestamp TEXT"
                ")"
            )
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            if current < self.schema_version:
                # No migrations: older records are defaulted field by field on load
                conn.execute(f"PRAGMA user_version = {int(self.schema_version)}")
                logger.info(
                    "local_store_schema_version_set",
                    previous=current,
                    current=self.schema_version,
                )

    async def initialize(self) -> None:
        """Open the store once. Concurrent callers wait on the same open."""
        if self._ready:
            return
        if self._init_future is None:
            self._init_future = asyncio.ensure_future(asyncio.to_thread(self._open))
        future = self._init_future
        try:
            await asyncio.shield(future)
        except (sqlite3.Error, OSError) as e:
            if self._init_future is future:
                self._init_future = None
            logger.error("local_store_initialize_failed", path=str(self.path), error=str(e))
            raise PersistenceError("initialize", str(e)) from e
        self._ready = True

    async def _run(self, operation: str, fn, *args):
        await self.initialize()
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.error("local_store_operation_failed", operation=operation, error=str(e))
            raise PersistenceError(operation, str(e)) from e

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _replace_all(self, records: List[StoredPlacement]) -> None:
        with self._connection() as conn:
            conn.execute(f"DELETE FROM {self.table}")
            conn.executemany(
                f"INSERT INTO {self.table} (id, data, timestamp) VALUES (?, ?, ?)",
                [(r.id, json.dumps(r.to_record()), r.timestamp) for r in records],
            )

    async def replace_all(self, records: Iterable[StoredPlacement]) -> None:
        """Replace the whole table with `records` atomically."""
        records = list(records)
        await self._run("replace_all", self._replace_all, records)
        logger.debug("local_store_replaced", count=len(records))

    def _delete(self, record_id: str) -> int:
        with self._connection() as conn:
            return conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (record_id,)).rowcount

    async def delete(self, record_id: str) -> None:
        deleted = await self._run("delete", self._delete, record_id)
        logger.debug("local_store_deleted", id=record_id, found=bool(deleted))

    def _load_all(self) -> List[StoredPlacement]:
        with self._connection() as conn:
            rows = conn.execute(f"SELECT id, data FROM {self.table} ORDER BY timestamp, id").fetchall()
        records = []
        for record_id, data in rows:
            try:
                raw = json.loads(data)
                if not isinstance(raw, dict):
                    raise ValueError("record is not an object")
                raw.setdefault("id", record_id)
                records.append(StoredPlacement.from_record(raw))
            except ValueError as e:
                logger.warning("local_store_record_skipped", id=record_id, error=str(e))
        return records

    async def load_all(self) -> List[StoredPlacement]:
        return await self._run("load_all", self._load_all)

    def _clear(self) -> None:
        with self._connection() as conn:
            conn.execute(f"DELETE FROM {self.table}")

    async def clear(self) -> None:
        await self._run("clear", self._clear)
        logger.info("local_store_cleared")
