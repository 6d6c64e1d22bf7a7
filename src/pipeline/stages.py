"""
Pipeline Stage Implementations

Each stage is a separate, synchronous function that can be called
independently (and from a worker thread). Every stage:
- tags its logs with the stage name
- records latency in Prometheus
- returns (result, metadata)
- converts unexpected failures into the stage's domain error
"""

import time
from typing import Dict, Any, Tuple

from PIL import Image

from src.core.logging import get_logger, LogContext
from src.core.metrics import record_layer_coverage, track_stage_latency
from src.core.exceptions import (
    OverlayBaseException,
    DecodeError,
    ExtractionError,
    CompositeError,
)
from src.engines.overlay import compositor, decoder, extractor, filters
from src.engines.overlay.models import CompositeRequest, Layer
from src.engines.overlay.schemas import RouteExtractionConfig, StatsExtractionConfig

logger = get_logger(__name__)

# Above this a layer is almost certainly a calibration miss (e.g. inverted mask)
SATURATED_COVERAGE = 0.9


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _observe_coverage(layer: Layer) -> float:
    ratio = round(filters.coverage(layer.bitmap), 4)
    record_layer_coverage(layer.name, ratio)
    if ratio >= SATURATED_COVERAGE:
        logger.warning("layer_saturated", layer=layer.name, coverage=ratio)
    return ratio


# =============================================================================
# Stage 1: Decode
# =============================================================================

def process_decode_stage(payload: str, role: str) -> Tuple[Image.Image, Dict[str, Any]]:
    """
    Decode one embedded image.

    Args:
        payload: Data URI or bare base64
        role: "screenshot" or "background", for logs only

    Returns:
        Tuple of (bitmap, metadata)
    """
    stage = f"decode_{role}"
    with LogContext(stage=stage):
        start = time.perf_counter()
        logger.info("decode_starting", role=role, payload_size=len(payload))

        try:
            with track_stage_latency(stage):
                bitmap = decoder.decode_image(payload)
        except OverlayBaseException:
            raise
        except Exception as e:
            logger.error("decode_failed", role=role, error=str(e))
            raise DecodeError(f"Could not decode {role}: {e}", stage=stage)

        metadata = {
            "stage": stage,
            "dimensions": bitmap.size,
            "mode": bitmap.mode,
            "duration_ms": _elapsed_ms(start),
        }
        logger.info("decode_completed", **metadata)
        return bitmap, metadata


# =============================================================================
# Stage 2: Channel Extraction (route + stats)
# =============================================================================

def process_route_stage(
    screenshot: Image.Image,
    config: RouteExtractionConfig,
    canvas_size: Tuple[int, int],
) -> Tuple[Layer, Dict[str, Any]]:
    """Isolate the route line as an opaque-white-on-transparent canvas layer."""
    with LogContext(stage="route_extraction"):
        start = time.perf_counter()
        logger.info(
            "route_extraction_starting",
            threshold=config.threshold,
            resize_fit=config.resize_fit.value,
        )

        try:
            with track_stage_latency("route_extraction"):
                layer = extractor.extract_route(screenshot, config, canvas_size)
        except OverlayBaseException:
            raise
        except Exception as e:
            logger.error("route_extraction_failed", error=str(e))
            raise ExtractionError(f"Route extraction failed: {e}", stage="route_extraction")

        metadata = {
            "stage": "route_extraction",
            "layer_size": layer.size,
            "coverage": _observe_coverage(layer),
            "duration_ms": _elapsed_ms(start),
        }
        logger.info("route_extraction_completed", **metadata)
        return layer, metadata


def process_stats_stage(
    screenshot: Image.Image,
    config: StatsExtractionConfig,
    canvas_size: Tuple[int, int],
) -> Tuple[Layer, Dict[str, Any]]:
    """Isolate the stats text block as a small white-on-transparent layer."""
    with LogContext(stage="stats_extraction"):
        start = time.perf_counter()
        logger.info(
            "stats_extraction_starting",
            threshold=config.threshold,
            cropped=config.crop_region is not None,
        )

        try:
            with track_stage_latency("stats_extraction"):
                layer = extractor.extract_stats(screenshot, config, canvas_size)
        except OverlayBaseException:
            raise
        except Exception as e:
            logger.error("stats_extraction_failed", error=str(e))
            raise ExtractionError(f"Stats extraction failed: {e}", stage="stats_extraction")

        metadata = {
            "stage": "stats_extraction",
            "layer_size": layer.size,
            "coverage": _observe_coverage(layer),
            "duration_ms": _elapsed_ms(start),
        }
        logger.info("stats_extraction_completed", **metadata)
        return layer, metadata


# =============================================================================
# Stage 3: Composite + Encode
# =============================================================================

def process_composite_stage(request: CompositeRequest) -> Tuple[Image.Image, Dict[str, Any]]:
    """Reframe the background and blend route, then stats, over it."""
    with LogContext(stage="composite"):
        start = time.perf_counter()
        logger.info(
            "composite_starting",
            background_fit=request.config.background.fit_policy.value,
            canvas_policy=request.config.canvas.policy.value,
        )

        try:
            with track_stage_latency("composite"):
                result = compositor.compose(request)
        except OverlayBaseException:
            raise
        except Exception as e:
            logger.error("composite_failed", error=str(e))
            raise CompositeError(f"Compositing failed: {e}")

        metadata = {
            "stage": "composite",
            "output_dimensions": result.size,
            "duration_ms": _elapsed_ms(start),
        }
        logger.info("composite_completed", **metadata)
        return result, metadata


def process_encode_stage(result: Image.Image) -> Tuple[str, Dict[str, Any]]:
    """Encode the composite as a PNG data URI."""
    with LogContext(stage="encode"):
        start = time.perf_counter()

        try:
            with track_stage_latency("encode"):
                data_uri = decoder.encode_data_uri(result, "PNG")
        except Exception as e:
            logger.error("encode_failed", error=str(e))
            raise CompositeError(f"Encoding result failed: {e}", stage="encode")

        metadata = {
            "stage": "encode",
            "output_size": len(data_uri),
            "duration_ms": _elapsed_ms(start),
        }
        logger.info("encode_completed", **metadata)
        return data_uri, metadata
