"""
SQLite durable store for durable-counter.

- One database file holds every counter; rows are keyed by (instance, key).
- Provides a per-thread SQLite connection; blocking calls run on worker
  threads via ``asyncio.to_thread`` so the event loop never blocks on disk.
- Applies the idempotent schema bundled at ``storage/schema.sql``.
- Sets sane PRAGMAs for web workloads (WAL, busy_timeout).

Every write is a single UPSERT statement, so a key is either at its old value
or its new value; there is no partially written state to recover from.
"""

from __future__ import annotations

import asyncio
import sqlite3
import threading
import time
from importlib.resources import files as pkg_files
from pathlib import Path
from typing import List, Optional

from durable_counter.errors import StorageFault
from durable_counter.logging import get_logger

from . import ScopedStorage, encode_value

log = get_logger(__name__)


def _schema_sql_text() -> str:
    resource = pkg_files("durable_counter.storage").joinpath("schema.sql")
    return resource.read_text(encoding="utf-8")


def _configure_connection(conn: sqlite3.Connection) -> None:
    # WAL journal, fsync at checkpoints, wait up to 5s on a locked database
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    conn.execute("PRAGMA busy_timeout=5000;")


class SQLiteStore:
    """
    :class:`~durable_counter.storage.StoreBackend` backed by a SQLite file.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser().resolve()
        self._tlocal = threading.local()
        self._conns: List[sqlite3.Connection] = []
        self._conns_lock = threading.Lock()
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    # --------------------------- connections ---------------------------

    def _open_connection(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self.path.as_posix(),
            check_same_thread=False,  # closed from the loop thread on shutdown
            isolation_level=None,     # autocommit; each statement is its own transaction
        )
        _configure_connection(conn)
        with self._conns_lock:
            self._conns.append(conn)
        return conn

    def connection(self) -> sqlite3.Connection:
        """
        Get the current thread's connection, opening it (and applying the
        schema once per store) if needed.
        """
        conn: Optional[sqlite3.Connection] = getattr(self._tlocal, "conn", None)
        if conn is None:
            conn = self._open_connection()
            self._tlocal.conn = conn
        if not self._schema_ready:
            self._apply_schema(conn)
        return conn

    def _apply_schema(self, conn: sqlite3.Connection) -> None:
        with self._schema_lock:
            if self._schema_ready:
                return
            conn.executescript(_schema_sql_text())
            self._schema_ready = True
            log.debug("sqlite_schema_applied", path=str(self.path))

    def migrate(self) -> None:
        """Apply the bundled schema. Safe to call multiple times."""
        self._schema_ready = False
        self.connection()

    # --------------------------- sync primitives ---------------------------

    def _read_sync(self, instance: str, key: str) -> Optional[int]:
        row = self.connection().execute(
            "SELECT value FROM counter_kv WHERE instance = ? AND key = ?",
            (instance, key),
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _write_sync(self, instance: str, key: str, value: int) -> None:
        self.connection().execute(
            """
            INSERT INTO counter_kv(instance, key, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(instance, key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (instance, key, encode_value(value), time.time()),
        )

    def _ping_sync(self) -> bool:
        return self.connection().execute("SELECT 1").fetchone() == (1,)

    # --------------------------- async API ---------------------------

    async def read(self, instance: str, key: str) -> Optional[int]:
        try:
            return await asyncio.to_thread(self._read_sync, instance, key)
        except sqlite3.Error as e:
            raise StorageFault("read", instance=instance, key=key, reason=str(e)) from e
        except ValueError as e:
            raise StorageFault("read", instance=instance, key=key, reason="stored value is not an integer") from e

    async def write(self, instance: str, key: str, value: int) -> None:
        try:
            await asyncio.to_thread(self._write_sync, instance, key, value)
        except sqlite3.Error as e:
            raise StorageFault("write", instance=instance, key=key, reason=str(e)) from e
        except ValueError as e:
            raise StorageFault("write", instance=instance, key=key, reason="value exceeds the decimal digit limit") from e

    async def ping(self) -> bool:
        try:
            return await asyncio.to_thread(self._ping_sync)
        except sqlite3.Error as e:
            log.warning("sqlite_ping_failed", path=str(self.path), error=str(e))
            return False

    async def close(self) -> None:
        """Close every connection opened by this store; later calls reopen lazily."""
        with self._conns_lock:
            conns, self._conns = self._conns, []
            self._tlocal = threading.local()
        for conn in conns:
            try:
                conn.close()
            except sqlite3.Error as e:
                log.warning("sqlite_close_failed", path=str(self.path), error=str(e))

    def scoped(self, instance: str) -> ScopedStorage:
        return ScopedStorage(self, instance)

    def __repr__(self) -> str:
        return f"SQLiteStore(path={str(self.path)!r})"


__all__ = ["SQLiteStore"]
