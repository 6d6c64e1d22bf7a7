"""
Decoder

Turns an embedded base64 image (data URI or bare payload) into a bitmap and
back again. HEIC/HEIF payloads are recognized by their ISO-BMFF signature and
routed through pillow-heif; everything else goes straight to Pillow.
"""

import io
import re
import base64
import binascii
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import open_heif

from src.core.exceptions import DecodeError, PayloadTooLargeError

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w.+-]+=[\w.+-]+)*)(?P<b64>;base64)?,", re.I)

# ISO-BMFF major/compatible brands used by high-efficiency containers
HEIF_BRANDS = {b"heic", b"heix", b"heim", b"heis", b"hevc", b"hevx", b"mif1", b"msf1", b"avif"}

SUPPORTED_FORMATS = {"JPEG", "PNG", "WEBP", "MPO"}


def check_payload_size(*payloads: str, limit_bytes: int) -> int:
    """
    Reject oversized input by raw length, before any decode is attempted.

    Returns the combined size in bytes.
    """
    total = sum(len(p.encode("utf-8")) if isinstance(p, str) else len(p) for p in payloads)
    if total > limit_bytes:
        raise PayloadTooLargeError(total, limit_bytes)
    return total


def split_data_uri(payload: str) -> Tuple[str, str]:
    """Return (mime type or '', base64 body). Bare payloads have no mime type."""
    payload = payload.strip()
    match = DATA_URI_RE.match(payload)
    if not match:
        if payload.startswith("data:"):
            raise DecodeError("Malformed data URI header")
        return "", payload
    if not match.group("b64"):
        raise DecodeError("Data URI is not base64 encoded")
    return (match.group("mime") or "").lower(), payload[match.end():]


def decode_base64(payload: str) -> bytes:
    """Strip any MIME prefix and strictly base64-decode the rest."""
    _, body = split_data_uri(payload)
    body = "".join(body.split())
    if not body:
        raise DecodeError("Image payload is empty")
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}")


def is_heif(data: bytes) -> bool:
    """True when the bytes start with an ftyp box carrying a HEIF-family brand."""
    if len(data) < 12 or data[4:8] != b"ftyp":
        return False
    box_size = int.from_bytes(data[0:4], "big")
    brands = {data[8:12]}
    end = min(box_size, len(data)) if box_size >= 16 else 16
    for offset in range(16, end - 3, 4):
        brands.add(data[offset:offset + 4])
    return bool(brands & HEIF_BRANDS)


def _decode_heif(data: bytes) -> Image.Image:
    try:
        heif = open_heif(io.BytesIO(data), convert_hdr_to_8bit=True)
        return heif.to_pillow().convert("RGB")
    except (ValueError, RuntimeError, OSError, EOFError) as e:
        raise DecodeError(f"Could not decode HEIF image: {e}")


def _decode_raster(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        if image.format not in SUPPORTED_FORMATS:
            raise DecodeError(f"Unsupported image format: {image.format}")
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise DecodeError(f"Could not decode image: {e}")
    return ImageOps.exif_transpose(image)


def decode_bytes(data: bytes) -> Image.Image:
    """Decode raw container bytes into an RGB or RGBA bitmap."""
    if not data:
        raise DecodeError("Image payload is empty")

    image = _decode_heif(data) if is_heif(data) else _decode_raster(data)

    width, height = image.size
    if width <= 0 or height <= 0:
        raise DecodeError(f"Decoded image has zero area ({width}x{height})")

    has_alpha = image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
    return image.convert("RGBA" if has_alpha else "RGB")


def decode_image(payload: str) -> Image.Image:
    """Data URI or bare base64 -> bitmap."""
    return decode_bytes(decode_base64(payload))


def encode_image(bitmap: Image.Image, fmt: str = "PNG", quality: int = 95) -> bytes:
    buffer = io.BytesIO()
    if fmt.upper() == "JPEG":
        bitmap.convert("RGB").save(buffer, format="JPEG", quality=quality)
    else:
        bitmap.save(buffer, format=fmt.upper(), optimize=False)
    return buffer.getvalue()


def encode_data_uri(bitmap: Image.Image, fmt: str = "PNG", quality: int = 95) -> str:
    """Bitmap -> self-describing data URI (PNG unless told otherwise)."""
    mime = "image/jpeg" if fmt.upper() == "JPEG" else f"image/{fmt.lower()}"
    encoded = base64.b64encode(encode_image(bitmap, fmt, quality)).decode("utf-8")
    return f"data:{mime};base64,{encoded}"
