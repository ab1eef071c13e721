"""Pipeline configuration loaded from environment / .env file.

Usage:
    from readqc.config import get_config
    cfg = get_config()
    cfg.db_path          # shared SQLite file for jobs, results and the queue
    cfg.lease_seconds    # how long a receiver owns a work item before redelivery
"""
from __future__ import annotations

import socket
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class PipelineSettings(BaseSettings):
    """Settings shared by the ingress API and the QC worker."""

    # ── Storage ──────────────────────────────────────────────────────
    db_path: str = "readqc.db"
    upload_dir: str = "data/uploads"

    # ── Queue ────────────────────────────────────────────────────────
    lease_seconds: float = Field(300.0, gt=0)
    poll_interval: float = Field(1.0, gt=0)
    dead_letter_enabled: bool = False

    # ── Worker ───────────────────────────────────────────────────────
    worker_name: str = Field(default_factory=socket.gethostname)
    worker_metrics_port: int = 9090

    # ── Logging ──────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "structured"  # "structured" or "json"

    model_config = {"env_prefix": "READQC_", "env_file": ".env", "extra": "ignore"}


@lru_cache
def get_config() -> PipelineSettings:
    """Return the process-wide settings singleton."""
    return PipelineSettings()
