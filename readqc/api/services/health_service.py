"""Pipeline health checks for API consumption."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from ...errors import PersistenceError
from ..jobs.db import Database
from ..jobs.queue import QueueChannel

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """Structured result from a single health check."""

    name: str
    status: str  # PASS, WARN, FAIL
    explanation: str = ""
    raw_metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "explanation": self.explanation,
            "raw_metrics": self.raw_metrics,
        }


class HealthService:
    """Checks database reachability, queue backlog and upload storage."""

    def __init__(self, db: Database, queue: QueueChannel, upload_dir: str) -> None:
        self._db = db
        self._queue = queue
        self.upload_dir = Path(upload_dir)

    async def _check_database(self) -> HealthCheckResult:
        try:
            await self._db.fetchone("SELECT 1")
        except PersistenceError as exc:
            return HealthCheckResult("database", "FAIL", str(exc))
        return HealthCheckResult("database", "PASS", self._db.db_path)

    async def _check_queue(self) -> HealthCheckResult:
        try:
            depth = await self._queue.depth()
            dead = await self._queue.dead_letter_count()
        except PersistenceError as exc:
            return HealthCheckResult("queue", "FAIL", str(exc))
        return HealthCheckResult(
            "queue",
            "PASS",
            f"{depth} pending work item(s)",
            {"depth": depth, "dead_letters": dead},
        )

    def _check_upload_dir(self) -> HealthCheckResult:
        if not self.upload_dir.exists():
            # Created lazily on first upload.
            return HealthCheckResult("upload_dir", "WARN", f"{self.upload_dir} does not exist yet")
        if not self.upload_dir.is_dir():
            return HealthCheckResult("upload_dir", "FAIL", f"{self.upload_dir} is not a directory")
        return HealthCheckResult("upload_dir", "PASS", str(self.upload_dir))

    async def get_quick_status(self) -> Dict[str, Any]:
        checks: List[HealthCheckResult] = [
            await self._check_database(),
            await self._check_queue(),
            self._check_upload_dir(),
        ]
        if any(c.status == "FAIL" for c in checks):
            overall = "FAIL"
        elif any(c.status == "WARN" for c in checks):
            overall = "WARN"
        else:
            overall = "PASS"
        return {"status": overall, "checks": [c.to_dict() for c in checks]}
