"""Ingress/query API server entry point.

Usage:
    python -m readqc.run_server
    python -m readqc.run_server --host 0.0.0.0 --port 9000 --log-level debug
"""
from __future__ import annotations

import argparse
import logging

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="readqc API server")
    parser.add_argument("--host", default=None, help="Bind address (default: READQC_API_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: READQC_API_PORT or 8080)")
    parser.add_argument("--db", default=None, help="SQLite database path (default: READQC_DB_PATH)")
    parser.add_argument("--upload-dir", default=None, help="Directory for stored uploads")
    parser.add_argument("--log-level", default=None, choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    import uvicorn

    from readqc.api.config import ApiSettings
    from readqc.api.main import create_app
    from readqc.config import PipelineSettings

    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.upload_dir:
        overrides["upload_dir"] = args.upload_dir
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    config = PipelineSettings(**overrides)

    settings = ApiSettings()
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port

    app = create_app(settings, config)
    logger.info("Starting readqc API on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
