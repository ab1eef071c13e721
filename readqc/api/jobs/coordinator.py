"""Worker loop that drives queued QC jobs through analysis to a terminal state."""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Optional

from pydantic import ValidationError

from ...analysis.analyzer import RecordStreamAnalyzer
from ...errors import InvalidTransitionError, NotFoundError, PersistenceError, PipelineError
from ...utils.logging import PipelineMetrics
from .models import Delivery, JobState, MetricsResult, WorkItem
from .queue import QueueChannel
from .results import ResultStore
from .store import JobStore

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    """What the coordinator did with one delivery."""

    done = "done"
    failed = "failed"
    discarded = "discarded"
    skipped = "skipped"
    released = "released"


class JobCoordinator:
    """Pulls work items one at a time and runs each to completion.

    Acknowledgement is deferred until the result and the terminal state are
    both persisted, so a crash anywhere before that leaves the item leased
    and it is redelivered once the lease runs out.  Failed jobs are marked
    ``failed`` and their item discarded; nothing is retried in place.
    """

    def __init__(
        self,
        store: JobStore,
        results: ResultStore,
        queue: QueueChannel,
        analyzer: Optional[RecordStreamAnalyzer] = None,
        metrics: Optional[PipelineMetrics] = None,
        consumer: str = "worker",
        poll_interval: float = 1.0,
    ) -> None:
        self._store = store
        self._results = results
        self._queue = queue
        self._analyzer = analyzer or RecordStreamAnalyzer()
        self.metrics = metrics or PipelineMetrics()
        self.consumer = consumer
        self.poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    # ── Loop control ─────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the worker loop in a background task."""
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_forever())

    async def stop(self) -> None:
        """Finish the item in hand, then stop the loop."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None

    async def run_forever(self) -> None:
        """Process items until ``stop`` is called."""
        logger.info("Coordinator %s consuming work items", self.consumer)
        while not self._stop_event.is_set():
            try:
                handled = await self.run_once()
            except Exception:
                # Store or queue unavailable; the leased item comes back later.
                logger.exception("Worker loop iteration failed")
                handled = False
            if handled:
                continue
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Coordinator %s stopped", self.consumer)

    async def run_once(self) -> bool:
        """Handle at most one item.  Returns ``False`` if the queue was empty."""
        delivery = await self._queue.receive(self.consumer)
        if delivery is None:
            return False
        await self.handle(delivery)
        return True

    async def drain(self) -> int:
        """Handle items until the queue has none available; return the count."""
        n = 0
        while await self.run_once():
            n += 1
        return n

    # ── Per-item processing ──────────────────────────────────────────

    async def handle(self, delivery: Delivery) -> Outcome:
        try:
            item = WorkItem.model_validate_json(delivery.body)
        except ValidationError as exc:
            logger.error("Bad work item %d: %s", delivery.delivery_id, exc)
            await self._queue.reject(delivery, "undecodable work item")
            self.metrics.message_discarded("undecodable work item")
            return Outcome.discarded

        job_id = item.job_id
        try:
            job = await self._store.get(job_id)
        except NotFoundError:
            logger.error("Work item %d references unknown job %s", delivery.delivery_id, job_id)
            await self._queue.reject(delivery, f"unknown job {job_id}")
            self.metrics.message_discarded("unknown job")
            return Outcome.discarded

        if job.state.is_terminal:
            # Redelivered after the terminal write but before the ack.
            logger.info("Job %s already %s; acknowledging duplicate delivery", job_id, job.state.value)
            await self._queue.ack(delivery)
            return Outcome.skipped

        start = time.perf_counter()
        try:
            await self._store.transition(job_id, JobState.processing)
        except InvalidTransitionError as exc:
            # Another consumer reached a terminal state first.
            logger.warning("Skipping job %s: %s", job_id, exc)
            await self._queue.ack(delivery)
            return Outcome.skipped
        except PersistenceError:
            logger.exception("Could not start job %s; releasing for redelivery", job_id)
            await self._queue.release(delivery)
            return Outcome.released

        try:
            stats = await asyncio.to_thread(
                self._analyzer.analyze_path, item.input_location, item.compression
            )
            result = MetricsResult(
                job_id=job_id,
                record_count=stats.record_count,
                avg_record_length=stats.avg_record_length,
                gc_fraction=stats.gc_fraction,
                n_fraction=stats.n_fraction,
                processing_duration_ms=stats.processing_duration_ms,
            )
            await self._results.upsert(result)
            await self._store.transition(job_id, JobState.done)
        except InvalidTransitionError as exc:
            logger.warning("Skipping job %s: %s", job_id, exc)
            await self._queue.ack(delivery)
            return Outcome.skipped
        except Exception as exc:
            return await self._fail(delivery, job_id, exc)

        await self._queue.ack(delivery)
        elapsed_ms = (time.perf_counter() - start) * 1000
        self.metrics.job_processed(job_id, elapsed_ms)
        logger.info(
            "Job %s done: %d reads, gc=%.4f n=%.4f",
            job_id, result.record_count, result.gc_fraction, result.n_fraction,
        )
        return Outcome.done

    async def _fail(self, delivery: Delivery, job_id: str, exc: Exception) -> Outcome:
        reason = str(exc) or type(exc).__name__
        if isinstance(exc, PipelineError):
            logger.error("Job %s failed: %s", job_id, reason)
        else:
            logger.exception("Job %s failed unexpectedly", job_id)

        try:
            await self._store.transition(job_id, JobState.failed, failure_reason=reason)
        except InvalidTransitionError as inner:
            # Only a terminal job refuses processing -> failed; its outcome stands.
            logger.warning("Job %s not marked failed: %s", job_id, inner)
            await self._queue.ack(delivery)
            return Outcome.skipped
        except PersistenceError:
            logger.exception("Could not record failure of job %s; releasing for redelivery", job_id)
            await self._queue.release(delivery)
            return Outcome.released

        await self._queue.reject(delivery, reason)
        self.metrics.job_failed(job_id, reason)
        return Outcome.failed
