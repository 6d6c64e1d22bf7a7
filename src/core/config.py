"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.

Structured pipeline values (color matrix, tone adjustments, placements,
crop regions) are read as JSON, e.g.:

    ROUTE_COLOR_MATRIX='[[1.2,-0.3,-0.3],[1.2,-0.3,-0.3],[1.2,-0.3,-0.3]]'
    STATS_PLACEMENT='{"anchor": "south"}'
"""

from pydantic_settings import BaseSettings
from typing import List, Optional

from src.engines.overlay.schemas import (
    BackgroundConfig,
    BlendMode,
    CanvasConfig,
    CanvasPolicy,
    CropRegion,
    FitPolicy,
    PipelineConfig,
    Placement,
    RouteExtractionConfig,
    StatsExtractionConfig,
    ToneAdjustment,
)

_ROUTE_DEFAULTS = RouteExtractionConfig()
_STATS_DEFAULTS = StatsExtractionConfig()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Route Overlay Compositor"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    DEBUG: bool = True

    # ==========================================================================
    # Request Limits
    # ==========================================================================
    INPUT_SIZE_LIMIT_BYTES: int = 16 * 1024 * 1024  # combined payload, checked before decode
    PROCESSING_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # Canvas & Background
    # ==========================================================================
    CANVAS_WIDTH: int = 1080
    CANVAS_HEIGHT: int = 1920
    CANVAS_POLICY: CanvasPolicy = CanvasPolicy.FIXED
    BACKGROUND_FIT_POLICY: FitPolicy = FitPolicy.COVER
    BACKGROUND_ENCODE_QUALITY: Optional[int] = 80  # None skips the JPEG re-encode

    # ==========================================================================
    # Route Extraction
    # ==========================================================================
    ROUTE_HUE_PREROTATION: float = _ROUTE_DEFAULTS.hue_prerotation
    ROUTE_COLOR_MATRIX: List[List[float]] = _ROUTE_DEFAULTS.color_matrix
    ROUTE_TONE_ADJUSTMENT: ToneAdjustment = _ROUTE_DEFAULTS.tone
    ROUTE_THRESHOLD: int = _ROUTE_DEFAULTS.threshold
    ROUTE_NEGATE: bool = _ROUTE_DEFAULTS.negate
    ROUTE_CONTRAST_GAIN: Optional[float] = _ROUTE_DEFAULTS.contrast_gain
    ROUTE_RESIZE_FIT: FitPolicy = _ROUTE_DEFAULTS.resize_fit
    ROUTE_BLEND_MODE: BlendMode = _ROUTE_DEFAULTS.blend_mode
    ROUTE_OPACITY: float = _ROUTE_DEFAULTS.opacity
    ROUTE_PLACEMENT: Placement = _ROUTE_DEFAULTS.placement

    # ==========================================================================
    # Stats Extraction
    # ==========================================================================
    STATS_CROP_REGION: Optional[CropRegion] = None
    STATS_TONE_ADJUSTMENT: ToneAdjustment = _STATS_DEFAULTS.tone
    STATS_THRESHOLD: int = _STATS_DEFAULTS.threshold
    STATS_NEGATE: bool = _STATS_DEFAULTS.negate
    STATS_CONTRAST_GAIN: Optional[float] = _STATS_DEFAULTS.contrast_gain
    STATS_RESIZE_FIT: FitPolicy = _STATS_DEFAULTS.resize_fit
    STATS_REGION_WIDTH: float = _STATS_DEFAULTS.region_width
    STATS_REGION_HEIGHT: float = _STATS_DEFAULTS.region_height
    STATS_BLEND_MODE: BlendMode = _STATS_DEFAULTS.blend_mode
    STATS_OPACITY: float = _STATS_DEFAULTS.opacity
    STATS_PLACEMENT: Placement = _STATS_DEFAULTS.placement

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost:8000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        env_parse_none_str = "None"

    def pipeline_config(self) -> PipelineConfig:
        """Assemble the validated pipeline tuning from the flat env surface."""
        return PipelineConfig(
            canvas=CanvasConfig(
                width=self.CANVAS_WIDTH,
                height=self.CANVAS_HEIGHT,
                policy=self.CANVAS_POLICY,
            ),
            background=BackgroundConfig(
                fit_policy=self.BACKGROUND_FIT_POLICY,
                encode_quality=self.BACKGROUND_ENCODE_QUALITY,
            ),
            route=RouteExtractionConfig(
                hue_prerotation=self.ROUTE_HUE_PREROTATION,
                color_matrix=self.ROUTE_COLOR_MATRIX,
                tone=self.ROUTE_TONE_ADJUSTMENT,
                threshold=self.ROUTE_THRESHOLD,
                negate=self.ROUTE_NEGATE,
                contrast_gain=self.ROUTE_CONTRAST_GAIN,
                resize_fit=self.ROUTE_RESIZE_FIT,
                blend_mode=self.ROUTE_BLEND_MODE,
                opacity=self.ROUTE_OPACITY,
                placement=self.ROUTE_PLACEMENT,
            ),
            stats=StatsExtractionConfig(
                crop_region=self.STATS_CROP_REGION,
                tone=self.STATS_TONE_ADJUSTMENT,
                threshold=self.STATS_THRESHOLD,
                negate=self.STATS_NEGATE,
                contrast_gain=self.STATS_CONTRAST_GAIN,
                resize_fit=self.STATS_RESIZE_FIT,
                region_width=self.STATS_REGION_WIDTH,
                region_height=self.STATS_REGION_HEIGHT,
                blend_mode=self.STATS_BLEND_MODE,
                opacity=self.STATS_OPACITY,
                placement=self.STATS_PLACEMENT,
            ),
        )


# Global settings instance
settings = Settings()
