"""Job, result and work-item data models."""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobState(str, enum.Enum):
    queued = "queued"
    processing = "processing"
    done = "done"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[JobState] = frozenset({JobState.done, JobState.failed})

# processing -> processing is the re-entry taken when a work item is
# redelivered after a worker died mid-job.
ALLOWED_TRANSITIONS = {
    JobState.queued: frozenset({JobState.processing}),
    JobState.processing: frozenset({JobState.processing, JobState.done, JobState.failed}),
    JobState.done: frozenset(),
    JobState.failed: frozenset(),
}


def can_transition(current: JobState, new: JobState) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


class JobRecord(BaseModel):
    """Persistent representation of a QC job."""

    job_id: str
    source_name: str
    state: JobState = JobState.queued
    failure_reason: Optional[str] = None
    submitted_at: str = Field(default_factory=utc_now)
    completed_at: Optional[str] = None


class MetricsResult(BaseModel):
    """Computed read metrics for a finished job (one per job)."""

    job_id: str
    record_count: int = Field(ge=0)
    avg_record_length: float = Field(ge=0.0)
    gc_fraction: float = Field(ge=0.0, le=1.0)
    n_fraction: float = Field(ge=0.0, le=1.0)
    processing_duration_ms: int = Field(ge=0)


class WorkItem(BaseModel):
    """Queue payload referencing one job's stored input."""

    model_config = ConfigDict(extra="ignore")

    job_id: str = Field(min_length=1)
    input_location: str = Field(min_length=1)
    compression: Literal["none", "gzip"] = "none"


class Delivery(BaseModel):
    """A work item leased to one consumer until acked, rejected or expired."""

    delivery_id: int
    body: str
    consumer: str
    delivery_count: int
    lease_expires_at: float

    @property
    def redelivered(self) -> bool:
        return self.delivery_count > 1


class JobStatusView(BaseModel):
    """Query-side view of a job and, once done, its metrics."""

    job: JobRecord
    result: Optional[MetricsResult] = None
