"""Producer- and query-side operations on the QC pipeline."""
from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from pathlib import Path, PurePath
from typing import IO, Optional

from ...errors import InputTooLargeError, PersistenceError
from ...utils.logging import PipelineMetrics
from ..jobs.db import Database
from ..jobs.models import JobState, JobStatusView, WorkItem
from ..jobs.queue import QueueChannel
from ..jobs.results import ResultStore
from ..jobs.store import JobStore

logger = logging.getLogger(__name__)

_COPY_CHUNK = 1 << 20  # 1 MiB


def safe_source_name(name: Optional[str]) -> str:
    """Strip any directory components from a client-supplied file name."""
    base = PurePath((name or "").replace("\\", "/")).name
    return base or "upload.fastq"


def compression_for(name: str) -> str:
    return "gzip" if name.lower().endswith(".gz") else "none"


class SubmissionService:
    """Accepts uploads as queued jobs and answers status queries."""

    def __init__(
        self,
        db: Database,
        store: JobStore,
        results: ResultStore,
        queue: QueueChannel,
        upload_dir: str,
        max_upload_bytes: Optional[int] = None,
        metrics: Optional[PipelineMetrics] = None,
    ) -> None:
        self._db = db
        self._store = store
        self._results = results
        self._queue = queue
        self.upload_dir = Path(upload_dir)
        self.max_upload_bytes = max_upload_bytes
        self.metrics = metrics

    async def submit(self, source_name: str, stream: IO[bytes]) -> str:
        """Persist *stream*, create a queued job and enqueue its work item.

        The file is written first; the job row and the work item are then
        inserted in a single transaction.  If anything fails the
        transaction is rolled back and the stored file removed, so no
        half-submitted job is ever visible.
        """
        name = safe_source_name(source_name)
        job_id = str(uuid.uuid4())
        dst = self.upload_dir / f"{job_id}_{name}"

        await asyncio.to_thread(self._store_input, stream, dst)
        try:
            async with self._db.transaction() as tx:
                await self._store.create(job_id, name, conn=tx)
                await self._queue.publish(
                    WorkItem(job_id=job_id, input_location=str(dst), compression=compression_for(name)),
                    conn=tx,
                )
        except BaseException:
            dst.unlink(missing_ok=True)
            raise

        if self.metrics is not None:
            self.metrics.job_submitted(job_id)
        logger.info("Submitted job %s for %s", job_id, name)
        return job_id

    def _store_input(self, stream: IO[bytes], dst: Path) -> None:
        """Copy *stream* to *dst* via a temp file and atomic rename."""
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.upload_dir, prefix=".upload-", suffix=".part")
        except OSError as exc:
            raise PersistenceError(f"Cannot create upload in {self.upload_dir}: {exc}") from exc
        written = 0
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = stream.read(_COPY_CHUNK)
                    if not chunk:
                        break
                    written += len(chunk)
                    if self.max_upload_bytes is not None and written > self.max_upload_bytes:
                        raise InputTooLargeError(
                            f"Upload exceeds {self.max_upload_bytes} bytes"
                        )
                    out.write(chunk)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_name, dst)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(f"Cannot store upload at {dst}: {exc}") from exc
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def get_job_status(self, job_id: str) -> JobStatusView:
        """Return the job and, when it is done, its metrics.

        Raises
        ------
        NotFoundError
            If no such job exists.
        """
        job = await self._store.get(job_id)
        result = None
        if job.state == JobState.done:
            result = await self._results.get(job_id)
        return JobStatusView(job=job, result=result)

