"""Dependency providers for FastAPI ``Depends()``.

The database handle and the services built on it are created once per app
(by the lifespan, or handed to ``create_app`` by tests) and kept on
``app.state.pipeline``; the getters below only hand out what is there.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from ...config import PipelineSettings
from ...utils.logging import PipelineMetrics
from ..config import ApiSettings
from ..jobs.db import Database
from ..jobs.queue import QueueChannel
from ..jobs.results import ResultStore
from ..jobs.store import JobStore
from ..services.health_service import HealthService
from ..services.submission_service import SubmissionService


@lru_cache
def get_settings() -> ApiSettings:
    return ApiSettings()


@dataclass
class Pipeline:
    """Handles shared by every request in one API process."""

    db: Database
    store: JobStore
    results: ResultStore
    queue: QueueChannel
    submissions: SubmissionService
    health: HealthService
    metrics: PipelineMetrics


def build_pipeline(
    db: Database,
    config: PipelineSettings,
    settings: ApiSettings,
    metrics: Optional[PipelineMetrics] = None,
) -> Pipeline:
    """Wire the stores and services onto one database handle."""
    metrics = metrics or PipelineMetrics()
    store = JobStore(db)
    results = ResultStore(db)
    queue = QueueChannel(
        db,
        lease_seconds=config.lease_seconds,
        dead_letter=config.dead_letter_enabled,
    )
    submissions = SubmissionService(
        db=db,
        store=store,
        results=results,
        queue=queue,
        upload_dir=config.upload_dir,
        max_upload_bytes=settings.max_upload_bytes,
        metrics=metrics,
    )
    health = HealthService(db, queue, config.upload_dir)
    return Pipeline(db, store, results, queue, submissions, health, metrics)


def get_pipeline(request: Request) -> Pipeline:
    """Return the ``Pipeline`` attached to the running app."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise RuntimeError("Pipeline not initialised; is the app lifespan running?")
    return pipeline


def get_job_store(pipeline: Pipeline = Depends(get_pipeline)) -> JobStore:
    return pipeline.store


def get_submission_service(pipeline: Pipeline = Depends(get_pipeline)) -> SubmissionService:
    return pipeline.submissions


def get_health_service(pipeline: Pipeline = Depends(get_pipeline)) -> HealthService:
    return pipeline.health


def get_metrics(pipeline: Pipeline = Depends(get_pipeline)) -> PipelineMetrics:
    return pipeline.metrics
