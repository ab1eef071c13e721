"""Shared aiosqlite connection handle for the job, result and queue stores."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, List, Optional, Tuple

import aiosqlite

from ...errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    job_id TEXT PRIMARY KEY,
    source_name TEXT NOT NULL,
    state TEXT NOT NULL DEFAULT 'queued'
        CHECK (state IN ('queued', 'processing', 'done', 'failed')),
    failure_reason TEXT,
    submitted_at TEXT NOT NULL,
    completed_at TEXT
);
CREATE TABLE IF NOT EXISTS metrics_results (
    job_id TEXT PRIMARY KEY REFERENCES jobs(job_id) ON DELETE CASCADE,
    record_count INTEGER NOT NULL,
    avg_record_length REAL NOT NULL,
    gc_fraction REAL NOT NULL,
    n_fraction REAL NOT NULL,
    processing_duration_ms INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS work_items (
    delivery_id INTEGER PRIMARY KEY AUTOINCREMENT,
    body TEXT NOT NULL,
    enqueued_at REAL NOT NULL,
    consumer TEXT,
    lease_expires_at REAL,
    delivery_count INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_work_items_lease ON work_items (lease_expires_at);
CREATE TABLE IF NOT EXISTS dead_letters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    body TEXT NOT NULL,
    reason TEXT,
    delivery_count INTEGER NOT NULL,
    discarded_at REAL NOT NULL
);
"""


class Database:
    """Process-wide SQLite handle with serialised explicit transactions.

    One instance is opened at process startup and handed to every store.
    Statements from concurrent coroutines are serialised through a lock so
    that a ``BEGIN IMMEDIATE`` transaction never interleaves with another
    caller on the same connection.  Separate processes coordinate through
    SQLite's file lock (WAL mode plus a busy timeout).
    """

    def __init__(self, db_path: str = "readqc.db", busy_timeout_ms: int = 5000) -> None:
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the connection and create tables if they don't exist."""
        if self._conn is not None:
            return
        try:
            self._conn = await aiosqlite.connect(self.db_path, isolation_level=None)
            await self._conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            await self._conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                await self._conn.execute("PRAGMA journal_mode = WAL")
            await self._conn.executescript(SCHEMA)
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Cannot open database {self.db_path}: {exc}") from exc
        logger.info("Database ready at %s", self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.initialize()
        return self._conn

    # ── Transactions ─────────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed statements in one ``BEGIN IMMEDIATE`` transaction.

        Commits on normal exit and rolls back on any exception.  SQLite
        failures surface as ``PersistenceError``; domain errors raised by the
        body propagate unchanged after the rollback.
        """
        conn = await self._connection()
        async with self._lock:
            try:
                await conn.execute("BEGIN IMMEDIATE")
            except aiosqlite.Error as exc:
                raise PersistenceError(f"Cannot begin transaction: {exc}") from exc
            try:
                yield conn
            except aiosqlite.Error as exc:
                await self._rollback(conn)
                raise PersistenceError(f"Transaction failed: {exc}") from exc
            except BaseException:
                await self._rollback(conn)
                raise
            try:
                await conn.execute("COMMIT")
            except aiosqlite.Error as exc:
                await self._rollback(conn)
                raise PersistenceError(f"Commit failed: {exc}") from exc

    @staticmethod
    async def _rollback(conn: aiosqlite.Connection) -> None:
        try:
            await conn.execute("ROLLBACK")
        except aiosqlite.Error:
            logger.warning("Rollback failed", exc_info=True)

    # ── Reads ────────────────────────────────────────────────────────

    async def fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[dict]:
        conn = await self._connection()
        async with self._lock:
            try:
                async with conn.execute(sql, tuple(params)) as cur:
                    row = await cur.fetchone()
                    cols = [d[0] for d in cur.description] if cur.description else []
            except aiosqlite.Error as exc:
                raise PersistenceError(f"Query failed: {exc}") from exc
        if row is None:
            return None
        return dict(zip(cols, row))

    async def fetchall(self, sql: str, params: Iterable[Any] = ()) -> List[dict]:
        conn = await self._connection()
        async with self._lock:
            try:
                async with conn.execute(sql, tuple(params)) as cur:
                    rows = await cur.fetchall()
                    cols = [d[0] for d in cur.description] if cur.description else []
            except aiosqlite.Error as exc:
                raise PersistenceError(f"Query failed: {exc}") from exc
        return [dict(zip(cols, r)) for r in rows]


async def fetch_dict(
    conn: aiosqlite.Connection, sql: str, params: Tuple[Any, ...] = ()
) -> Optional[dict]:
    """Fetch one row as a dict on a connection already inside a transaction."""
    async with conn.execute(sql, params) as cur:
        row = await cur.fetchone()
        if row is None:
            return None
        return dict(zip([d[0] for d in cur.description], row))
