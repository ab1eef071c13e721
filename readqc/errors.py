"""Domain exceptions shared by the analyzer, stores, queue and services."""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the QC pipeline."""


class DuplicateJobError(PipelineError):
    """A job with the requested ID already exists."""


class NotFoundError(PipelineError):
    """Requested job ID does not exist."""


class InvalidTransitionError(PipelineError):
    """Requested state change is not allowed by the job state machine."""

    def __init__(self, job_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Job '{job_id}' cannot move from '{current}' to '{requested}'"
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested


class MalformedInputError(PipelineError):
    """The input stream could not be opened or read."""


class PersistenceError(PipelineError):
    """A job, result or queue store read/write failed."""


class InputTooLargeError(PipelineError):
    """Upload exceeds the configured size limit."""
