"""Job submission and status endpoints."""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, File, UploadFile

from ..deps.providers import get_job_store, get_submission_service
from ..jobs.store import JobStore
from ..schemas.envelope import ApiResponse
from ..schemas.jobs import SubmitResponse
from ..services.submission_service import SubmissionService

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("")
async def submit_job(
    file: UploadFile = File(...),
    svc: SubmissionService = Depends(get_submission_service),
) -> ApiResponse:
    """Upload a FASTQ file (optionally ``.gz``) and queue it for QC."""
    t0 = time.monotonic()
    try:
        job_id = await svc.submit(file.filename, file.file)
    finally:
        await file.close()
    elapsed = (time.monotonic() - t0) * 1000
    return ApiResponse.success(SubmitResponse(job_id=job_id).model_dump(), elapsed_ms=elapsed)


@router.get("")
async def list_jobs(
    limit: int = 50,
    store: JobStore = Depends(get_job_store),
) -> ApiResponse:
    jobs = await store.list_jobs(limit=limit)
    return ApiResponse.success([j.model_dump() for j in jobs])


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    svc: SubmissionService = Depends(get_submission_service),
) -> ApiResponse:
    view = await svc.get_job_status(job_id)
    return ApiResponse.success(view.model_dump())
