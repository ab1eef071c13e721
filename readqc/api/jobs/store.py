"""SQLite-backed persistence for job records."""
from __future__ import annotations

import logging
from typing import List, Optional

import aiosqlite

from ...errors import DuplicateJobError, InvalidTransitionError, NotFoundError
from .db import Database, fetch_dict
from .models import JobRecord, JobState, can_transition, utc_now

logger = logging.getLogger(__name__)


class JobStore:
    """Job identity, lifecycle state and terminal outcome."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ── CRUD ─────────────────────────────────────────────────────────

    async def create(
        self,
        job_id: str,
        source_name: str,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> JobRecord:
        """Insert a new queued job and return its record.

        When *conn* is given the insert runs inside the caller's open
        transaction instead of its own.

        Raises
        ------
        DuplicateJobError
            If *job_id* already exists.
        """
        rec = JobRecord(job_id=job_id, source_name=source_name)
        if conn is not None:
            await self._insert(conn, rec)
        else:
            async with self._db.transaction() as tx:
                await self._insert(tx, rec)
        return rec

    @staticmethod
    async def _insert(conn: aiosqlite.Connection, rec: JobRecord) -> None:
        try:
            await conn.execute(
                "INSERT INTO jobs (job_id, source_name, state, submitted_at) VALUES (?,?,?,?)",
                (rec.job_id, rec.source_name, rec.state.value, rec.submitted_at),
            )
        except aiosqlite.IntegrityError as exc:
            raise DuplicateJobError(f"Job '{rec.job_id}' already exists") from exc

    async def get(self, job_id: str) -> JobRecord:
        """Fetch a single job by ID.

        Raises
        ------
        NotFoundError
            If no such job exists.
        """
        row = await self._db.fetchone("SELECT * FROM jobs WHERE job_id = ?", (job_id,))
        if row is None:
            raise NotFoundError(f"Job '{job_id}' not found")
        return JobRecord(**row)

    async def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        """List jobs ordered by submission time (newest first)."""
        rows = await self._db.fetchall(
            "SELECT * FROM jobs ORDER BY submitted_at DESC LIMIT ?", (limit,)
        )
        return [JobRecord(**r) for r in rows]

    async def transition(
        self,
        job_id: str,
        new_state: JobState,
        failure_reason: Optional[str] = None,
    ) -> JobRecord:
        """Move *job_id* to *new_state* atomically and return the new record.

        ``completed_at`` is stamped on entry to a terminal state and
        ``failure_reason`` is only kept for ``failed``.

        Raises
        ------
        NotFoundError
            If no such job exists.
        InvalidTransitionError
            If the state machine forbids the move (e.g. leaving a terminal state).
        """
        new_state = JobState(new_state)
        async with self._db.transaction() as tx:
            row = await fetch_dict(tx, "SELECT * FROM jobs WHERE job_id = ?", (job_id,))
            if row is None:
                raise NotFoundError(f"Job '{job_id}' not found")
            current = JobState(row["state"])
            if not can_transition(current, new_state):
                raise InvalidTransitionError(job_id, current.value, new_state.value)

            completed_at = utc_now() if new_state.is_terminal else None
            reason = failure_reason if new_state == JobState.failed else None
            await tx.execute(
                "UPDATE jobs SET state = ?, failure_reason = ?, completed_at = ? WHERE job_id = ?",
                (new_state.value, reason, completed_at, job_id),
            )

        row.update(state=new_state.value, failure_reason=reason, completed_at=completed_at)
        logger.debug("Job %s: %s -> %s", job_id, current.value, new_state.value)
        return JobRecord(**row)
