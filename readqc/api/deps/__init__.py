"""Dependency injection providers."""
from .providers import (
    get_health_service,
    get_job_store,
    get_metrics,
    get_pipeline,
    get_settings,
    get_submission_service,
)

__all__ = [
    "get_health_service",
    "get_job_store",
    "get_metrics",
    "get_pipeline",
    "get_settings",
    "get_submission_service",
]
