"""
FastAPI Dependencies for the Overlay Service

Provides dependency injection for:
- Settings (process-wide, read once)
- Base pipeline config (built from settings, cached)
"""

from functools import lru_cache

from src.core.config import Settings, settings
from src.engines.overlay.schemas import PipelineConfig


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_base_pipeline_config() -> PipelineConfig:
    """Validated pipeline config from the environment. Built once per process."""
    return settings.pipeline_config()
