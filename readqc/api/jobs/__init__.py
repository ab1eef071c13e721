"""SQLite-backed job pipeline: stores, durable queue and coordinator."""
from .coordinator import JobCoordinator, Outcome
from .db import Database
from .models import Delivery, JobRecord, JobState, JobStatusView, MetricsResult, WorkItem
from .queue import QueueChannel
from .results import ResultStore
from .store import JobStore

__all__ = [
    "Database",
    "Delivery",
    "JobCoordinator",
    "JobRecord",
    "JobState",
    "JobStatusView",
    "JobStore",
    "MetricsResult",
    "Outcome",
    "QueueChannel",
    "ResultStore",
    "WorkItem",
]
