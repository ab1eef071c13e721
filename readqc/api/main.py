"""FastAPI application factory and server entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import PipelineSettings, get_config
from ..utils.logging import configure_logging
from .config import ApiSettings
from .deps.providers import Pipeline, build_pipeline, get_settings
from .errors import register_error_handlers
from .jobs.db import Database

logger = logging.getLogger(__name__)


def _make_lifespan(
    settings: ApiSettings,
    config: PipelineSettings,
    pipeline: Optional[Pipeline],
):
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        if pipeline is not None:
            # Caller owns the handles (tests, embedding).
            app.state.pipeline = pipeline
            yield
            return

        configure_logging(config.log_level, config.log_format)
        logger.info("Starting readqc API on %s:%s", settings.host, settings.port)

        db = Database(config.db_path)
        await db.initialize()
        app.state.pipeline = build_pipeline(db, config, settings)

        yield

        await db.close()
        app.state.pipeline = None
        logger.info("Shutting down readqc API")

    return _lifespan


def create_app(
    settings: Optional[ApiSettings] = None,
    config: Optional[PipelineSettings] = None,
    pipeline: Optional[Pipeline] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    When *pipeline* is given it is used as-is and never closed by the app;
    otherwise the lifespan opens the database named in *config*.
    """
    if settings is None:
        settings = get_settings()
    if config is None:
        config = get_config()

    app = FastAPI(
        title="readqc API",
        description="Submit FASTQ files for asynchronous read QC and query the results.",
        version=__version__,
        lifespan=_make_lifespan(settings, config, pipeline),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.pipeline = pipeline

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    allow_creds = "*" not in origins
    if not allow_creds:
        logger.warning(
            "CORS origins contain '*'. Credentials will NOT be allowed. "
            "Set explicit origins for credentialed cross-origin requests."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_creds,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    from .routers import all_routers

    for router in all_routers():
        app.include_router(router)

    return app
