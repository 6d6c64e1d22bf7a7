"""
Overlay Endpoints

POST /api/v1/overlay        - Composite a route screenshot onto a background
GET  /api/v1/overlay/config - Effective pipeline tuning and known presets
"""

from fastapi import APIRouter, Depends

from src.api.dependencies import (
    get_base_pipeline_config,
    get_settings,
)
from src.core.config import Settings
from src.core.logging import get_logger
from src.engines.overlay.presets import apply_preset, list_presets
from src.engines.overlay.schemas import (
    ErrorResponseDTO,
    OverlayConfigResponseDTO,
    OverlayRequestDTO,
    OverlayResponseDTO,
    PipelineConfig,
)
from src.pipeline.runner import run_overlay_pipeline

logger = get_logger(__name__)
router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponseDTO, "description": "Unknown preset"},
    413: {"model": ErrorResponseDTO, "description": "Combined payload over the size limit"},
    500: {"model": ErrorResponseDTO, "description": "Decode, extraction or composite failure"},
    504: {"model": ErrorResponseDTO, "description": "Processing timed out"},
}


@router.post("", response_model=OverlayResponseDTO, responses=ERROR_RESPONSES)
async def create_overlay(
    request: OverlayRequestDTO,
    base_config: PipelineConfig = Depends(get_base_pipeline_config),
    settings: Settings = Depends(get_settings),
):
    """
    Extract the route line and stats block from an activity screenshot and
    blend them onto the background photo.

    Flow:
    1. Reject oversized payloads (byte-length check, before decoding)
    2. Decode both images (HEIC/HEIF converted server-side)
    3. Extract route and stats layers concurrently
    4. Composite background -> route -> stats, return a PNG data URI
    """
    config = apply_preset(base_config, request.preset)

    logger.info(
        "overlay_request_received",
        preset=request.preset,
        screenshot_chars=len(request.strava_image),
        background_chars=len(request.base_image),
    )

    result = await run_overlay_pipeline(
        request.strava_image,
        request.base_image,
        config,
        input_size_limit_bytes=settings.INPUT_SIZE_LIMIT_BYTES,
        timeout_seconds=settings.PROCESSING_TIMEOUT_SECONDS,
    )

    logger.info(
        "overlay_request_completed",
        canvas_size=result.metadata.get("canvas_size"),
        duration_ms=result.metadata.get("duration_ms"),
    )
    return OverlayResponseDTO(result_image=result.result_image)


@router.get("/config", response_model=OverlayConfigResponseDTO)
async def get_overlay_config(
    config: PipelineConfig = Depends(get_base_pipeline_config),
    settings: Settings = Depends(get_settings),
):
    """Report the configured tuning so calibration fixtures can be checked against it."""
    return OverlayConfigResponseDTO(
        config=config,
        presets=list_presets(),
        input_size_limit_bytes=settings.INPUT_SIZE_LIMIT_BYTES,
        processing_timeout_seconds=settings.PROCESSING_TIMEOUT_SECONDS,
        metadata={"version": settings.APP_VERSION, "environment": settings.ENVIRONMENT},
    )
