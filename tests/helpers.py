"""Synthetic images shared by unit and e2e tests."""

import io
import base64

from PIL import Image, ImageDraw

STRAVA_ORANGE = (252, 76, 2)


def to_data_uri(image: Image.Image, fmt: str = "PNG") -> str:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    mime = "jpeg" if fmt == "JPEG" else fmt.lower()
    return f"data:image/{mime};base64,{base64.b64encode(buffer.getvalue()).decode()}"


def from_data_uri(uri: str) -> Image.Image:
    _, body = uri.split(",", 1)
    return Image.open(io.BytesIO(base64.b64decode(body)))


def make_screenshot(size=(540, 960), background=(0, 0, 0), line=((100, 200), (400, 200)), width=6):
    """Screenshot with a single orange route segment."""
    image = Image.new("RGB", size, background)
    ImageDraw.Draw(image).line(line, fill=STRAVA_ORANGE, width=width)
    return image


def make_background(size=(1080, 1920), color=(0, 0, 0)):
    return Image.new("RGB", size, color)
