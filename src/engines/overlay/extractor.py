"""
Channel Extractor

Two independent recipes run on the same decoded screenshot:

- route: (hue pre-rotation) -> color recombination -> tone -> threshold
  -> (negate) -> (stretch) -> resize to the canvas
- stats: (crop) -> grayscale -> tone -> threshold -> (negate) -> (stretch)
  -> resize to the stats region

Both end as RGBA layers where white is opaque and black is transparent.
Neither recipe keeps state between calls, so they are safe to run
concurrently on a shared, read-only screenshot.
"""

from typing import Tuple

from PIL import Image

from src.engines.overlay import filters
from src.engines.overlay.models import Layer
from src.engines.overlay.schemas import RouteExtractionConfig, StatsExtractionConfig


def binarize_route(screenshot: Image.Image, config: RouteExtractionConfig) -> Image.Image:
    """Route recipe up to (and including) the contrast stretch, at source size."""
    bitmap = screenshot
    if config.hue_prerotation:
        filters.require_area(bitmap, "hue_prerotation")
        bitmap = filters.rotate_hue(bitmap, config.hue_prerotation)
    bitmap = filters.recombine(bitmap, config.color_matrix)
    bitmap = filters.modulate(bitmap, config.tone)
    bitmap = filters.threshold(bitmap, config.threshold)
    if config.negate:
        bitmap = filters.negate(bitmap)
    if config.contrast_gain is not None:
        bitmap = filters.linear_stretch(bitmap, config.contrast_gain)
    return bitmap


def extract_route(
    screenshot: Image.Image,
    config: RouteExtractionConfig,
    canvas_size: Tuple[int, int],
) -> Layer:
    binary = binarize_route(screenshot, config)
    bitmap = filters.resize_to_fit(filters.mask_to_layer(binary), canvas_size, config.resize_fit)
    return Layer(
        name="route",
        bitmap=bitmap,
        blend_mode=config.blend_mode,
        opacity=config.opacity,
        placement=config.placement,
    )


def stats_region_size(config: StatsExtractionConfig, canvas_size: Tuple[int, int]) -> Tuple[int, int]:
    width, height = canvas_size
    return (
        max(1, int(width * config.region_width)),
        max(1, int(height * config.region_height)),
    )


def binarize_stats(screenshot: Image.Image, config: StatsExtractionConfig) -> Image.Image:
    """Stats recipe up to (and including) the contrast stretch, at source size."""
    bitmap = screenshot
    if config.crop_region is not None:
        bitmap = filters.crop_fraction(bitmap, config.crop_region)
    bitmap = filters.grayscale(bitmap)
    bitmap = filters.modulate(bitmap, config.tone)
    bitmap = filters.threshold(bitmap, config.threshold)
    if config.negate:
        bitmap = filters.negate(bitmap)
    if config.contrast_gain is not None:
        bitmap = filters.linear_stretch(bitmap, config.contrast_gain)
    return bitmap


def extract_stats(
    screenshot: Image.Image,
    config: StatsExtractionConfig,
    canvas_size: Tuple[int, int],
) -> Layer:
    binary = binarize_stats(screenshot, config)
    bitmap = filters.resize_to_fit(
        filters.mask_to_layer(binary),
        stats_region_size(config, canvas_size),
        config.resize_fit,
    )
    return Layer(
        name="stats",
        bitmap=bitmap,
        blend_mode=config.blend_mode,
        opacity=config.opacity,
        placement=config.placement,
    )
