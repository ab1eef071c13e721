"""QC worker: consumes queued work items and computes read metrics.

Usage:
    python -m readqc.run_worker                   # Run until SIGINT/SIGTERM
    python -m readqc.run_worker --once            # Drain the queue and exit
    python -m readqc.run_worker --metrics-port 0  # Disable the Prometheus endpoint
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal

from prometheus_client import start_http_server

from readqc.api.jobs.coordinator import JobCoordinator
from readqc.api.jobs.db import Database
from readqc.api.jobs.queue import QueueChannel
from readqc.api.jobs.results import ResultStore
from readqc.api.jobs.store import JobStore
from readqc.config import PipelineSettings
from readqc.utils.logging import PipelineMetrics, configure_logging

logger = logging.getLogger(__name__)


async def run(config: PipelineSettings, once: bool = False, metrics_port: int = 0) -> int:
    """Open the database, run the coordinator, and close everything on exit."""
    metrics = PipelineMetrics()
    if metrics_port:
        start_http_server(metrics_port, registry=metrics.registry)
        logger.info("Worker metrics on :%d/metrics", metrics_port)

    db = Database(config.db_path)
    await db.initialize()
    try:
        coordinator = JobCoordinator(
            store=JobStore(db),
            results=ResultStore(db),
            queue=QueueChannel(
                db,
                lease_seconds=config.lease_seconds,
                dead_letter=config.dead_letter_enabled,
            ),
            metrics=metrics,
            consumer=f"{config.worker_name}:{os.getpid()}",
            poll_interval=config.poll_interval,
        )
        if once:
            n = await coordinator.drain()
            logger.info("Drained %d work item(s)", n)
            return n

        await coordinator.start()
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass  # Windows
        await stop.wait()
        logger.info("Shutdown requested; finishing current item")
        await coordinator.stop()
        return 0
    finally:
        await db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="readqc QC worker")
    parser.add_argument("--db", default=None, help="SQLite database path (default: READQC_DB_PATH)")
    parser.add_argument("--once", action="store_true", help="Process available items, then exit")
    parser.add_argument("--metrics-port", type=int, default=None,
                        help="Prometheus port (default: READQC_WORKER_METRICS_PORT; 0 disables)")
    parser.add_argument("--log-level", default=None, choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    config = PipelineSettings(**overrides)
    configure_logging(config.log_level, config.log_format)

    port = config.worker_metrics_port if args.metrics_port is None else args.metrics_port
    asyncio.run(run(config, once=args.once, metrics_port=port))


if __name__ == "__main__":
    main()
