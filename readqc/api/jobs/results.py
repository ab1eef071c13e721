"""SQLite-backed store of computed read metrics, one row per job."""
from __future__ import annotations

from typing import Optional

import aiosqlite

from .db import Database
from .models import MetricsResult

_UPSERT = """
INSERT INTO metrics_results
    (job_id, record_count, avg_record_length, gc_fraction, n_fraction, processing_duration_ms)
VALUES (?,?,?,?,?,?)
ON CONFLICT (job_id) DO UPDATE SET
    record_count = excluded.record_count,
    avg_record_length = excluded.avg_record_length,
    gc_fraction = excluded.gc_fraction,
    n_fraction = excluded.n_fraction,
    processing_duration_ms = excluded.processing_duration_ms
"""


class ResultStore:
    """Idempotent metrics persistence keyed by job ID."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def upsert(
        self,
        result: MetricsResult,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> None:
        """Write *result*, replacing any existing row for the same job."""
        params = (
            result.job_id,
            result.record_count,
            result.avg_record_length,
            result.gc_fraction,
            result.n_fraction,
            result.processing_duration_ms,
        )
        if conn is not None:
            await conn.execute(_UPSERT, params)
            return
        async with self._db.transaction() as tx:
            await tx.execute(_UPSERT, params)

    async def get(self, job_id: str) -> Optional[MetricsResult]:
        """Return the job's metrics, or ``None`` if it has not finished."""
        row = await self._db.fetchone(
            "SELECT * FROM metrics_results WHERE job_id = ?", (job_id,)
        )
        if row is None:
            return None
        return MetricsResult(**row)

    async def count(self, job_id: str) -> int:
        row = await self._db.fetchone(
            "SELECT COUNT(*) AS n FROM metrics_results WHERE job_id = ?", (job_id,)
        )
        return int(row["n"]) if row else 0
