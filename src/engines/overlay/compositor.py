"""
Compositor

Reframes the background onto the canvas and blends layers over it, in the
order given. Blending is done in float32 on the clipped overlap only.

Geometry policy: a layer that hangs partly off the canvas is clipped
silently; a layer that misses the canvas entirely is a CompositeError.
"""

import io
from typing import Iterable, Tuple

import numpy as np
from PIL import Image

from src.core.exceptions import CompositeError
from src.core.logging import get_logger
from src.engines.overlay import filters
from src.engines.overlay.models import Layer, CompositeRequest
from src.engines.overlay.schemas import (
    Anchor,
    BackgroundConfig,
    BlendMode,
    CanvasConfig,
    CanvasPolicy,
    Placement,
)

logger = get_logger(__name__)


def resolve_canvas_size(background: Image.Image, canvas: CanvasConfig) -> Tuple[int, int]:
    if canvas.policy == CanvasPolicy.BACKGROUND:
        return background.size
    return canvas.width, canvas.height


def prepare_background(
    background: Image.Image,
    canvas_size: Tuple[int, int],
    config: BackgroundConfig,
) -> Image.Image:
    """Reframe to the canvas, optionally passing the color through JPEG to bound size."""
    canvas = filters.resize_to_fit(background, canvas_size, config.fit_policy)

    if config.encode_quality is not None:
        alpha = canvas.getchannel("A")
        buffer = io.BytesIO()
        canvas.convert("RGB").save(buffer, format="JPEG", quality=config.encode_quality)
        buffer.seek(0)
        rgb = Image.open(buffer).convert("RGB")
        canvas = Image.merge("RGBA", (*rgb.split(), alpha))

    return canvas


def resolve_offset(
    layer_size: Tuple[int, int],
    canvas_size: Tuple[int, int],
    placement: Placement,
) -> Tuple[int, int]:
    """Top-left corner of the layer on the canvas."""
    w, h = layer_size
    cw, ch = canvas_size

    if placement.anchor is None:
        return int(round(placement.left * cw)), int(round(placement.top * ch))

    cx, cy = (cw - w) // 2, (ch - h) // 2
    return {
        Anchor.CENTER: (cx, cy),
        Anchor.NORTH: (cx, 0),
        Anchor.SOUTH: (cx, ch - h),
        Anchor.EAST: (cw - w, cy),
        Anchor.WEST: (0, cy),
        Anchor.NORTHWEST: (0, 0),
        Anchor.NORTHEAST: (cw - w, 0),
        Anchor.SOUTHWEST: (0, ch - h),
        Anchor.SOUTHEAST: (cw - w, ch - h),
    }[placement.anchor]


def blend_layer(base: Image.Image, layer: Layer) -> Image.Image:
    """Return a new RGBA image with `layer` blended over `base`."""
    if base.mode != "RGBA":
        base = base.convert("RGBA")

    lw, lh = layer.size
    if lw <= 0 or lh <= 0:
        raise CompositeError(f"Layer '{layer.name}' has zero area ({lw}x{lh})")

    cw, ch = base.size
    x, y = resolve_offset(layer.size, base.size, layer.placement)
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(cw, x + lw), min(ch, y + lh)
    if x1 <= x0 or y1 <= y0:
        raise CompositeError(
            f"Layer '{layer.name}' ({lw}x{lh} at {x},{y}) does not overlap the {cw}x{ch} canvas"
        )
    if (x0, y0, x1, y1) != (x, y, x + lw, y + lh):
        logger.debug("layer_clipped", layer=layer.name, offset=(x, y), size=(lw, lh))

    out = np.asarray(base, dtype=np.float32) / 255.0
    over = np.asarray(layer.bitmap.convert("RGBA"), dtype=np.float32) / 255.0
    over = over[y0 - y:y1 - y, x0 - x:x1 - x]

    region = out[y0:y1, x0:x1]
    b_rgb, b_a = region[..., :3], region[..., 3]
    o_rgb = over[..., :3]
    a = over[..., 3] * layer.opacity

    if layer.blend_mode == BlendMode.SCREEN:
        blended = 1.0 - (1.0 - b_rgb) * (1.0 - o_rgb)
    else:
        blended = o_rgb

    region[..., :3] = b_rgb + (blended - b_rgb) * a[..., None]
    region[..., 3] = b_a + a * (1.0 - b_a)

    return Image.fromarray(np.clip(np.rint(out * 255.0), 0, 255).astype(np.uint8))


def composite(canvas: Image.Image, layers: Iterable[Layer]) -> Image.Image:
    """Blend layers in order; later layers paint over earlier ones."""
    result = canvas
    for layer in layers:
        result = blend_layer(result, layer)
    return result


def compose(request: CompositeRequest) -> Image.Image:
    """Background first, route second, stats last."""
    canvas_size = resolve_canvas_size(request.background, request.config.canvas)
    canvas = prepare_background(request.background, canvas_size, request.config.background)
    return composite(canvas, [layer for layer in (request.route, request.stats) if layer is not None])
