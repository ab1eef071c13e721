"""System health and Prometheus metrics endpoints."""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ...utils.logging import PipelineMetrics
from ..deps.providers import get_health_service, get_metrics
from ..schemas.envelope import ApiResponse
from ..services.health_service import HealthService

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def quick_health(svc: HealthService = Depends(get_health_service)) -> ApiResponse:
    t0 = time.monotonic()
    data = await svc.get_quick_status()
    elapsed = (time.monotonic() - t0) * 1000
    return ApiResponse.success(data, elapsed_ms=elapsed)


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics(metrics: PipelineMetrics = Depends(get_metrics)) -> Response:
    return Response(content=generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)
