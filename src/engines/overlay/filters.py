"""
Bitmap Filter Primitives

Small, pure operations the extraction recipes are assembled from. Every
function takes a PIL image and returns a new one; inputs are never mutated.
Per-pixel math that Pillow has no primitive for (recombination, linear
stretch, thresholding) is done in numpy.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageEnhance, ImageOps

from src.core.exceptions import ExtractionError
from src.engines.overlay.schemas import CropRegion, FitPolicy, ToneAdjustment

RESAMPLE = Image.Resampling.LANCZOS
TRANSPARENT = (0, 0, 0, 0)

# Modes that carry real color information (P is expanded before use)
COLOR_MODES = {"RGB", "RGBA", "RGBX", "P", "PA", "CMYK", "YCbCr"}


def require_area(bitmap: Image.Image, operation: str) -> None:
    width, height = bitmap.size
    if width <= 0 or height <= 0:
        raise ExtractionError(f"{operation}: bitmap has zero area ({width}x{height})")


def split_alpha(bitmap: Image.Image) -> Tuple[Image.Image, Optional[Image.Image]]:
    """Separate the color planes from alpha so tone filters never touch it."""
    if bitmap.mode in ("RGBA", "PA") or (bitmap.mode == "P" and "transparency" in bitmap.info):
        rgba = bitmap.convert("RGBA")
        return rgba.convert("RGB"), rgba.getchannel("A")
    if bitmap.mode == "LA":
        return bitmap.getchannel("L"), bitmap.getchannel("A")
    if bitmap.mode in ("L", "RGB"):
        return bitmap.copy(), None
    return bitmap.convert("RGB"), None


def merge_alpha(base: Image.Image, alpha: Optional[Image.Image]) -> Image.Image:
    if alpha is None:
        return base
    if base.mode == "L":
        return Image.merge("LA", (base, alpha))
    return Image.merge("RGBA", (*base.convert("RGB").split(), alpha))


def recombine(bitmap: Image.Image, matrix: Sequence[Sequence[float]]) -> Image.Image:
    """
    Apply a 3x3 channel recombination: out[c] = sum(matrix[c][k] * in[k]).

    Alpha passes through untouched. Results are clipped to 0..255.
    """
    require_area(bitmap, "recombine")
    if bitmap.mode not in COLOR_MODES:
        raise ExtractionError(
            f"recombine: mode {bitmap.mode!r} has no color channels to recombine"
        )

    base, alpha = split_alpha(bitmap)
    rgb = np.asarray(base.convert("RGB"), dtype=np.float32)
    m = np.asarray(matrix, dtype=np.float32)
    out = np.einsum("hwk,ck->hwc", rgb, m)
    out = np.clip(np.rint(out), 0, 255).astype(np.uint8)
    return merge_alpha(Image.fromarray(out), alpha)


def rotate_hue(bitmap: Image.Image, degrees: float) -> Image.Image:
    """Rotate hue in HSV space. Alpha is kept; grayscale input is returned unchanged."""
    base, alpha = split_alpha(bitmap)
    if base.mode != "RGB" or not degrees:
        return merge_alpha(base, alpha)

    h, s, v = base.convert("HSV").split()
    shift = int(round((degrees % 360.0) / 360.0 * 256.0))
    hue = (np.asarray(h, dtype=np.int32) + shift) % 256
    h = Image.fromarray(hue.astype(np.uint8))
    return merge_alpha(Image.merge("HSV", (h, s, v)).convert("RGB"), alpha)


def modulate(bitmap: Image.Image, tone: ToneAdjustment) -> Image.Image:
    """
    Brightness, saturation and contrast (Pillow ImageEnhance semantics),
    then hue rotation. Factors of 1.0 and a hue of 0 are no-ops.
    """
    require_area(bitmap, "modulate")
    base, alpha = split_alpha(bitmap)

    if tone.brightness != 1.0:
        base = ImageEnhance.Brightness(base).enhance(tone.brightness)
    if tone.saturation != 1.0 and base.mode == "RGB":
        base = ImageEnhance.Color(base).enhance(tone.saturation)
    if tone.contrast != 1.0:
        base = ImageEnhance.Contrast(base).enhance(tone.contrast)
    if tone.hue:
        base = rotate_hue(base, tone.hue)

    return merge_alpha(base, alpha)


def grayscale(bitmap: Image.Image) -> Image.Image:
    require_area(bitmap, "grayscale")
    return bitmap.convert("L")


def threshold(bitmap: Image.Image, cutoff: int) -> Image.Image:
    """Binarize on luma: pixels >= cutoff become 255, the rest 0."""
    require_area(bitmap, "threshold")
    if not 0 <= cutoff <= 255:
        raise ExtractionError(f"threshold: cutoff {cutoff} outside 0..255")

    luma = np.asarray(bitmap.convert("L"), dtype=np.uint8)
    binary = np.where(luma >= cutoff, 255, 0).astype(np.uint8)
    return Image.fromarray(binary)


def negate(bitmap: Image.Image) -> Image.Image:
    require_area(bitmap, "negate")
    base, alpha = split_alpha(bitmap)
    return merge_alpha(ImageOps.invert(base), alpha)


def linear_stretch(bitmap: Image.Image, gain: float) -> Image.Image:
    """out = gain * in - gain * 128, clipped. Sharpens near-binary edges."""
    require_area(bitmap, "linear_stretch")
    base, alpha = split_alpha(bitmap)
    arr = np.asarray(base, dtype=np.float32)
    out = np.clip(np.rint(gain * arr - gain * 128.0), 0, 255).astype(np.uint8)
    return merge_alpha(Image.fromarray(out), alpha)


def crop_fraction(bitmap: Image.Image, region: CropRegion) -> Image.Image:
    require_area(bitmap, "crop")
    width, height = bitmap.size
    box = (
        int(round(region.left * width)),
        int(round(region.top * height)),
        int(round(region.right * width)),
        int(round(region.bottom * height)),
    )
    if box[2] <= box[0] or box[3] <= box[1]:
        raise ExtractionError(f"crop: region {box} is empty for a {width}x{height} bitmap")
    return bitmap.crop(box)


def mask_to_layer(binary: Image.Image) -> Image.Image:
    """White becomes opaque white, black becomes fully transparent."""
    mask = binary.convert("L")
    return Image.merge("RGBA", (mask, mask, mask, mask))


def resize_to_fit(
    bitmap: Image.Image,
    size: Tuple[int, int],
    fit: FitPolicy,
    pad_color: Tuple[int, int, int, int] = TRANSPARENT,
) -> Image.Image:
    """Reframe into exactly `size` (RGBA) using the given fit policy."""
    require_area(bitmap, "resize")
    width, height = size
    if width <= 0 or height <= 0:
        raise ExtractionError(f"resize: target {width}x{height} has zero area")

    rgba = bitmap.convert("RGBA")
    if fit == FitPolicy.FILL:
        return rgba.resize((width, height), RESAMPLE)
    if fit == FitPolicy.COVER:
        return ImageOps.fit(rgba, (width, height), RESAMPLE, centering=(0.5, 0.5))
    return ImageOps.pad(rgba, (width, height), RESAMPLE, color=pad_color, centering=(0.5, 0.5))


def coverage(bitmap: Image.Image) -> float:
    """Fraction of pixels that are at least half opaque (or half white for masks)."""
    plane = bitmap.getchannel("A") if "A" in bitmap.getbands() else bitmap.convert("L")
    values = np.asarray(plane)
    if values.size == 0:
        return 0.0
    return float(np.count_nonzero(values >= 128)) / values.size
