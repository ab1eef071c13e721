"""Shared test fixtures for the readqc test suite."""
from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from readqc.api.config import ApiSettings
from readqc.api.jobs.coordinator import JobCoordinator
from readqc.api.jobs.db import Database
from readqc.api.jobs.queue import QueueChannel
from readqc.api.jobs.results import ResultStore
from readqc.api.jobs.store import JobStore
from readqc.config import PipelineSettings
from readqc.utils.logging import PipelineMetrics


# ── Data fixtures ────────────────────────────────────────────────────


def fastq_text(sequences: List[str]) -> str:
    """Render *sequences* as well-formed 4-line FASTQ records."""
    lines = []
    for i, seq in enumerate(sequences):
        lines += [f"@read{i}", seq, "+", "I" * len(seq)]
    return "\n".join(lines) + ("\n" if lines else "")


@pytest.fixture
def write_fastq(tmp_path):
    """Factory writing a FASTQ file under tmp_path and returning its path."""

    def _write(sequences: List[str], name: str = "reads.fastq") -> Path:
        path = tmp_path / name
        path.write_text(fastq_text(sequences))
        return path

    return _write


class FakeClock:
    """Manually advanced wall clock for lease expiry tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ── Store fixtures ───────────────────────────────────────────────────


@pytest.fixture
async def db():
    d = Database(":memory:")
    await d.initialize()
    yield d
    await d.close()


@pytest.fixture
def store(db):
    return JobStore(db)


@pytest.fixture
def results(db):
    return ResultStore(db)


@pytest.fixture
def queue(db, clock):
    return QueueChannel(db, lease_seconds=30.0, clock=clock)


@pytest.fixture
def metrics():
    return PipelineMetrics()


@pytest.fixture
def coordinator(store, results, queue, metrics):
    return JobCoordinator(store, results, queue, metrics=metrics, consumer="test-worker", poll_interval=0.01)


# ── API fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def pipeline_config(tmp_path):
    return PipelineSettings(db_path=":memory:", upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def api_settings():
    return ApiSettings(max_upload_bytes=1 << 20)


@pytest.fixture
def pipeline(db, pipeline_config, api_settings, metrics):
    from readqc.api.deps.providers import build_pipeline

    return build_pipeline(db, pipeline_config, api_settings, metrics=metrics)


@pytest.fixture
def app(pipeline, pipeline_config, api_settings):
    """Test FastAPI app bound to the per-test in-memory pipeline."""
    from readqc.api.main import create_app

    return create_app(api_settings, pipeline_config, pipeline=pipeline)


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    from httpx import ASGITransport, AsyncClient

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac
