"""
Structured logging and pipeline metrics for readqc.

Provides:
    - StructuredFormatter: JSON formatter for machine-parseable log output.
    - configure_logging: Root logger setup used by the process entry points.
    - PipelineMetrics: Prometheus counters for the job pipeline, mirrored to the log.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram

# Linear 5ms + 20ms*k buckets, ten of them.
DURATION_BUCKETS_MS = tuple(5.0 + 20.0 * i for i in range(10))


class StructuredFormatter(logging.Formatter):
    """JSON formatter for machine-parseable log output.

    Each log record is serialised as a single JSON line containing at minimum:
        timestamp, level, module, message.
    If the record carries a ``metrics`` attribute (set via ``extra={"metrics": {...}}``),
    those key-value pairs are included under the ``"metrics"`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
        }
        if hasattr(record, "metrics"):
            log_entry["metrics"] = record.metrics
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "structured") -> None:
    """Configure the root logger for a readqc process.

    ``fmt="json"`` emits one JSON object per line via ``StructuredFormatter``;
    anything else uses the pipe-separated human format.
    """
    effective_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    logging.basicConfig(level=effective_level, handlers=[handler], force=True)


class PipelineMetrics:
    """Prometheus counters for job submission and processing.

    Each instance owns its own ``CollectorRegistry`` so that the API process,
    the worker process and individual tests never collide on metric names.

    Usage::

        metrics = PipelineMetrics()
        metrics.job_processed(job_id, duration_ms=42)
        metrics.message_discarded("bad json")
        start_http_server(9090, registry=metrics.registry)
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        logger_name: str = "readqc.metrics",
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.logger = logging.getLogger(logger_name)

        self.jobs_submitted = Counter(
            "readqc_jobs_submitted_total",
            "Total number of submitted QC jobs",
            registry=self.registry,
        )
        self.jobs_processed = Counter(
            "readqc_jobs_processed_total",
            "Total number of processed QC jobs",
            registry=self.registry,
        )
        self.jobs_failed = Counter(
            "readqc_jobs_failed_total",
            "Total number of failed QC jobs",
            registry=self.registry,
        )
        self.messages_discarded = Counter(
            "readqc_messages_discarded_total",
            "Work items discarded without touching a job",
            registry=self.registry,
        )
        self.job_duration = Histogram(
            "readqc_job_duration_ms",
            "QC job duration in milliseconds",
            buckets=DURATION_BUCKETS_MS,
            registry=self.registry,
        )

    def job_submitted(self, job_id: str) -> None:
        self.jobs_submitted.inc()
        self.logger.info("job_submitted", extra={"metrics": {"job_id": job_id}})

    def job_processed(self, job_id: str, duration_ms: float) -> None:
        self.jobs_processed.inc()
        self.job_duration.observe(duration_ms)
        self.logger.info(
            "job_processed",
            extra={"metrics": {"job_id": job_id, "duration_ms": round(duration_ms, 3)}},
        )

    def job_failed(self, job_id: str, reason: str) -> None:
        self.jobs_failed.inc()
        self.logger.warning(
            "job_failed",
            extra={"metrics": {"job_id": job_id, "reason": reason}},
        )

    def message_discarded(self, reason: str) -> None:
        """Pipeline-level failure: a work item dropped before any job update."""
        self.messages_discarded.inc()
        self.jobs_failed.inc()
        self.logger.warning(
            "message_discarded",
            extra={"metrics": {"reason": reason}},
        )

    def snapshot(self) -> Dict[str, float]:
        """Return current counter values keyed by sample name."""
        out: Dict[str, float] = {}
        for family in self.registry.collect():
            for sample in family.samples:
                if sample.name.endswith("_total"):
                    out[sample.name] = sample.value
        return out
