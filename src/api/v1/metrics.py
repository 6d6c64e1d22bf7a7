"""
Metrics Endpoint

GET /api/v1/metrics - Prometheus metrics endpoint
"""

from fastapi import APIRouter, Response

from src.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()


@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Exposes:
    - overlay_stage_latency_seconds (per stage)
    - overlay_pipeline_duration_seconds
    - overlay_requests_total
    - overlay_payload_bytes
    - overlay_layer_coverage_ratio (per layer)
    - http_requests_total
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
