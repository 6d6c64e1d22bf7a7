"""
Overlay Pipeline Runner

Runs one request end to end:

    size check -> decode (both) -> route || stats -> composite -> encode

Pillow work is blocking, so each stage runs in a worker thread. Route and
stats extraction only read the decoded screenshot and run concurrently.
The whole run is bounded by a timeout; nothing partial is ever returned.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from src.core.exceptions import OverlayBaseException, ProcessingTimeoutError
from src.core.logging import get_logger, with_logging
from src.core.metrics import payload_bytes, record_overlay_completion
from src.engines.overlay.compositor import resolve_canvas_size
from src.engines.overlay.decoder import check_payload_size
from src.engines.overlay.models import CompositeRequest
from src.engines.overlay.schemas import PipelineConfig
from src.pipeline.stages import (
    process_composite_stage,
    process_decode_stage,
    process_encode_stage,
    process_route_stage,
    process_stats_stage,
)

logger = get_logger(__name__)


@dataclass
class OverlayResult:
    result_image: str
    metadata: Dict[str, Any] = field(default_factory=dict)


async def _execute(strava_image: str, base_image: str, config: PipelineConfig) -> OverlayResult:
    stages: Dict[str, Any] = {}

    (screenshot, shot_meta), (background, bg_meta) = await asyncio.gather(
        asyncio.to_thread(process_decode_stage, strava_image, "screenshot"),
        asyncio.to_thread(process_decode_stage, base_image, "background"),
    )
    stages["decode_screenshot"] = shot_meta
    stages["decode_background"] = bg_meta

    canvas_size = resolve_canvas_size(background, config.canvas)

    (route, route_meta), (stats, stats_meta) = await asyncio.gather(
        asyncio.to_thread(process_route_stage, screenshot, config.route, canvas_size),
        asyncio.to_thread(process_stats_stage, screenshot, config.stats, canvas_size),
    )
    stages["route_extraction"] = route_meta
    stages["stats_extraction"] = stats_meta

    request = CompositeRequest(
        screenshot=screenshot,
        background=background,
        config=config,
        route=route,
        stats=stats,
    )
    result, composite_meta = await asyncio.to_thread(process_composite_stage, request)
    stages["composite"] = composite_meta

    data_uri, encode_meta = await asyncio.to_thread(process_encode_stage, result)
    stages["encode"] = encode_meta

    return OverlayResult(
        result_image=data_uri,
        metadata={"canvas_size": canvas_size, "stages": stages},
    )


@with_logging("overlay")
async def run_overlay_pipeline(
    strava_image: str,
    base_image: str,
    config: PipelineConfig,
    *,
    input_size_limit_bytes: int,
    timeout_seconds: Optional[float] = None,
) -> OverlayResult:
    """
    Produce the composite for one screenshot/background pair.

    Raises:
        PayloadTooLargeError: before any decoding, if the inputs are too big
        DecodeError / ExtractionError / CompositeError: from the stages
        ProcessingTimeoutError: if the run exceeds `timeout_seconds`
    """
    start = time.perf_counter()
    try:
        total = check_payload_size(strava_image, base_image, limit_bytes=input_size_limit_bytes)
        payload_bytes.observe(total)

        try:
            result = await asyncio.wait_for(
                _execute(strava_image, base_image, config),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ProcessingTimeoutError(timeout_seconds)

    except OverlayBaseException as e:
        record_overlay_completion(
            "failed", time.perf_counter() - start, failure_stage=e.stage or "unknown"
        )
        raise

    duration = time.perf_counter() - start
    record_overlay_completion("completed", duration)
    result.metadata["duration_ms"] = int(duration * 1000)
    return result
