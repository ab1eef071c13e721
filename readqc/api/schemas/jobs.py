"""Response schemas for job endpoints."""
from __future__ import annotations

from pydantic import BaseModel

from ..jobs.models import JobState


class SubmitResponse(BaseModel):
    """Body returned by POST /api/jobs."""

    job_id: str
    state: JobState = JobState.queued
