"""Tests for upload submission and job status queries."""
import io

import pytest

from conftest import fastq_text
from readqc.api.jobs.models import JobState, MetricsResult, WorkItem
from readqc.api.services.submission_service import compression_for, safe_source_name
from readqc.errors import InputTooLargeError, NotFoundError, PersistenceError


@pytest.fixture
def svc(pipeline):
    return pipeline.submissions


def _stored_files(svc):
    if not svc.upload_dir.exists():
        return []
    return sorted(p.name for p in svc.upload_dir.iterdir())


@pytest.mark.asyncio
async def test_submit_creates_queued_job_and_item(svc, pipeline, metrics):
    payload = fastq_text(["ACGT", "GGCC"]).encode()
    job_id = await svc.submit("reads.fastq", io.BytesIO(payload))

    job = await pipeline.store.get(job_id)
    assert job.state == JobState.queued
    assert job.source_name == "reads.fastq"

    assert await pipeline.queue.depth() == 1
    delivery = await pipeline.queue.receive("t")
    item = WorkItem.model_validate_json(delivery.body)
    assert item.job_id == job_id
    assert item.compression == "none"
    with open(item.input_location, "rb") as fh:
        assert fh.read() == payload

    assert metrics.snapshot()["readqc_jobs_submitted_total"] == 1


@pytest.mark.asyncio
async def test_submit_gzip_name_selects_gzip(svc, pipeline):
    await svc.submit("reads.fastq.GZ", io.BytesIO(b"\x1f\x8b"))
    delivery = await pipeline.queue.receive("t")
    assert WorkItem.model_validate_json(delivery.body).compression == "gzip"


@pytest.mark.asyncio
async def test_submissions_get_distinct_ids(svc):
    a = await svc.submit("a.fastq", io.BytesIO(b""))
    b = await svc.submit("a.fastq", io.BytesIO(b""))
    assert a != b
    assert len(_stored_files(svc)) == 2


@pytest.mark.asyncio
async def test_oversized_upload_rejected(svc, pipeline):
    svc.max_upload_bytes = 10
    with pytest.raises(InputTooLargeError):
        await svc.submit("big.fastq", io.BytesIO(b"A" * 11))
    assert await pipeline.store.list_jobs() == []
    assert await pipeline.queue.depth() == 0
    assert _stored_files(svc) == []


@pytest.mark.asyncio
async def test_enqueue_failure_rolls_back(svc, pipeline, monkeypatch):
    async def broken_publish(item, conn=None):
        raise PersistenceError("queue unavailable")

    monkeypatch.setattr(pipeline.queue, "publish", broken_publish)

    with pytest.raises(PersistenceError):
        await svc.submit("reads.fastq", io.BytesIO(b"@r\nA\n+\nI\n"))

    assert await pipeline.store.list_jobs() == []
    assert _stored_files(svc) == []


@pytest.mark.asyncio
async def test_unwritable_upload_dir(svc, tmp_path):
    blocker = tmp_path / "file-not-dir"
    blocker.write_text("x")
    svc.upload_dir = blocker
    with pytest.raises(PersistenceError):
        await svc.submit("reads.fastq", io.BytesIO(b""))


@pytest.mark.asyncio
async def test_status_of_unknown_job(svc):
    with pytest.raises(NotFoundError):
        await svc.get_job_status("nope")


@pytest.mark.asyncio
async def test_status_has_result_only_when_done(svc, pipeline):
    job_id = await svc.submit("reads.fastq", io.BytesIO(b""))
    view = await svc.get_job_status(job_id)
    assert view.job.state == JobState.queued
    assert view.result is None

    await pipeline.store.transition(job_id, JobState.processing)
    await pipeline.results.upsert(MetricsResult(
        job_id=job_id, record_count=3, avg_record_length=4.0,
        gc_fraction=0.5, n_fraction=0.0, processing_duration_ms=2,
    ))
    assert (await svc.get_job_status(job_id)).result is None

    await pipeline.store.transition(job_id, JobState.done)
    view = await svc.get_job_status(job_id)
    assert view.job.state == JobState.done
    assert view.result.record_count == 3


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("reads.fastq", "reads.fastq"),
        ("../../etc/passwd", "passwd"),
        ("C:\\data\\run1.fq.gz", "run1.fq.gz"),
        ("", "upload.fastq"),
        (None, "upload.fastq"),
    ],
)
def test_safe_source_name(raw, expected):
    assert safe_source_name(raw) == expected


def test_compression_for():
    assert compression_for("x.fastq.gz") == "gzip"
    assert compression_for("x.fastq") == "none"
