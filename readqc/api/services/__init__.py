"""Pipeline services used by the HTTP routers."""
from .health_service import HealthService
from .submission_service import SubmissionService

__all__ = [
    "HealthService",
    "SubmissionService",
]
