"""
API v1 Router Module - Route Overlay Service

All v1 endpoints are prefixed with /api/v1/

Primary endpoint: POST /api/v1/overlay
- Screenshot + background in, PNG composite data URI out

Supporting endpoints:
- /api/v1/overlay/config - Effective pipeline tuning and presets
- /api/v1/metrics - Prometheus metrics
"""

from fastapi import APIRouter

from src.api.v1.overlay import router as overlay_router
from src.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(overlay_router, prefix="/overlay", tags=["overlay"])
api_v1_router.include_router(metrics_router, tags=["metrics"])
