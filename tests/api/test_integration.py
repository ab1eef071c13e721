"""Integration tests: upload over HTTP, worker run, status and metrics endpoints."""
import gzip

import pytest

from conftest import fastq_text
from readqc.api.jobs.coordinator import JobCoordinator


def _worker(pipeline, metrics):
    return JobCoordinator(
        pipeline.store, pipeline.results, pipeline.queue, metrics=metrics, consumer="it-worker"
    )


async def _upload(client, name, payload):
    resp = await client.post("/api/jobs", files={"file": (name, payload, "application/octet-stream")})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["ok"] is True
    assert body["data"]["state"] == "queued"
    return body["data"]["job_id"]


@pytest.mark.asyncio
async def test_submit_process_and_query(client, pipeline, metrics):
    job_id = await _upload(client, "reads.fastq", fastq_text(["ACGTACGTAC", "NNNNACGTAC"]).encode())

    resp = await client.get(f"/api/jobs/{job_id}")
    data = resp.json()["data"]
    assert data["job"]["state"] == "queued"
    assert data["result"] is None

    assert await _worker(pipeline, metrics).drain() == 1

    resp = await client.get(f"/api/jobs/{job_id}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["job"]["state"] == "done"
    assert data["job"]["completed_at"] is not None
    assert data["result"]["record_count"] == 2
    assert data["result"]["gc_fraction"] == pytest.approx(0.40)
    assert data["result"]["n_fraction"] == pytest.approx(0.20)


@pytest.mark.asyncio
async def test_gzip_upload_processed(client, pipeline, metrics):
    job_id = await _upload(client, "reads.fastq.gz", gzip.compress(fastq_text(["GGGG", "AAAA"]).encode()))
    await _worker(pipeline, metrics).drain()

    data = (await client.get(f"/api/jobs/{job_id}")).json()["data"]
    assert data["job"]["state"] == "done"
    assert data["result"]["gc_fraction"] == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_failed_job_reports_reason(client, pipeline, metrics):
    job_id = await _upload(client, "broken.fastq.gz", b"definitely not gzip")
    await _worker(pipeline, metrics).drain()

    data = (await client.get(f"/api/jobs/{job_id}")).json()["data"]
    assert data["job"]["state"] == "failed"
    assert data["job"]["failure_reason"]
    assert data["result"] is None


@pytest.mark.asyncio
async def test_list_jobs(client):
    ids = {await _upload(client, f"r{i}.fastq", b"") for i in range(3)}
    resp = await client.get("/api/jobs")
    body = resp.json()
    assert body["ok"] is True
    assert {j["job_id"] for j in body["data"]} == ids


@pytest.mark.asyncio
async def test_unknown_job_404(client):
    resp = await client.get("/api/jobs/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert body["ok"] is False
    assert "does-not-exist" in body["error"]


@pytest.mark.asyncio
async def test_missing_file_field_422(client):
    resp = await client.post("/api/jobs", data={"other": "x"})
    assert resp.status_code == 422
    assert resp.json()["ok"] is False


@pytest.mark.asyncio
async def test_oversized_upload_413(client, pipeline):
    pipeline.submissions.max_upload_bytes = 8
    resp = await client.post("/api/jobs", files={"file": ("big.fastq", b"A" * 64)})
    assert resp.status_code == 413
    assert resp.json()["ok"] is False
    assert await pipeline.store.list_jobs() == []


@pytest.mark.asyncio
async def test_health_envelope(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["data"]["status"] in ("PASS", "WARN")
    names = {c["name"] for c in body["data"]["checks"]}
    assert names == {"database", "queue", "upload_dir"}


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    await _upload(client, "reads.fastq", b"")
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "readqc_jobs_submitted_total 1.0" in resp.text
    assert "readqc_messages_discarded_total" in resp.text
