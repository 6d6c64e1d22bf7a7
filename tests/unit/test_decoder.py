import base64
import io

import pytest
from PIL import Image
import pillow_heif

from src.core.exceptions import DecodeError, PayloadTooLargeError
from src.engines.overlay import decoder
from src.pipeline.stages import process_decode_stage
from tests.helpers import make_screenshot, to_data_uri


def test_decode_png_data_uri():
    bitmap = decoder.decode_image(to_data_uri(make_screenshot()))
    assert bitmap.size == (540, 960)
    assert bitmap.mode == "RGB"


@pytest.mark.parametrize("fmt", ["JPEG", "WEBP"])
def test_decode_other_formats(fmt):
    bitmap = decoder.decode_image(to_data_uri(Image.new("RGB", (32, 16), (10, 200, 30)), fmt))
    assert bitmap.size == (32, 16)


def test_decode_bare_base64():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8)).save(buffer, format="PNG")
    bitmap = decoder.decode_image(base64.b64encode(buffer.getvalue()).decode())
    assert bitmap.size == (8, 8)


def test_decode_keeps_alpha():
    bitmap = decoder.decode_image(to_data_uri(Image.new("RGBA", (4, 4), (1, 2, 3, 4))))
    assert bitmap.mode == "RGBA"
    assert bitmap.getpixel((0, 0)) == (1, 2, 3, 4)


def test_split_data_uri_strips_prefix():
    mime, body = decoder.split_data_uri("data:image/png;base64,AAAA")
    assert mime == "image/png"
    assert body == "AAAA"


def test_split_data_uri_passes_bare_payload():
    assert decoder.split_data_uri("AAAA") == ("", "AAAA")


@pytest.mark.parametrize("payload", [
    "data:image/png;base64,not*base64!",
    "data:image/png;base64,",
    "data:image/png,plain-text",
    "data:garbage",
    "",
])
def test_malformed_payload_raises(payload):
    with pytest.raises(DecodeError):
        decoder.decode_image(payload)


def test_non_image_bytes_raise():
    payload = base64.b64encode(b"definitely not an image").decode()
    with pytest.raises(DecodeError):
        decoder.decode_image(payload)


def test_unsupported_container_raises():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4)).save(buffer, format="BMP")
    with pytest.raises(DecodeError):
        decoder.decode_image(base64.b64encode(buffer.getvalue()).decode())


def test_payload_size_check():
    assert decoder.check_payload_size("abc", "de", limit_bytes=5) == 5
    with pytest.raises(PayloadTooLargeError) as exc_info:
        decoder.check_payload_size("abc", "def", limit_bytes=5)
    assert exc_info.value.code == 413


def test_is_heif_signature():
    heic_header = b"\x00\x00\x00\x18ftypheic\x00\x00\x00\x00mif1heic"
    avif_header = b"\x00\x00\x00\x1cftypavif\x00\x00\x00\x00avifmif1miaf"
    mp4_header = b"\x00\x00\x00\x18ftypisom\x00\x00\x02\x00isomiso2"
    assert decoder.is_heif(heic_header)
    assert decoder.is_heif(avif_header)
    assert not decoder.is_heif(mp4_header)
    assert not decoder.is_heif(b"\x89PNG\r\n\x1a\n")


def test_truncated_heif_raises_decode_error():
    data = b"\x00\x00\x00\x18ftypheic\x00\x00\x00\x00mif1heic" + b"\x00" * 8
    with pytest.raises(DecodeError):
        process_decode_stage(base64.b64encode(data).decode(), "background")


def test_encode_data_uri_is_png():
    uri = decoder.encode_data_uri(Image.new("RGBA", (10, 20)))
    assert uri.startswith("data:image/png;base64,")
    assert decoder.decode_image(uri).size == (10, 20)


def test_decode_heic_round_trip():
    buffer = io.BytesIO()
    pillow_heif.from_pillow(Image.new("RGB", (64, 48), (200, 30, 10))).save(buffer, format="HEIF")
    data = buffer.getvalue()
    assert decoder.is_heif(data)

    bitmap = decoder.decode_image(base64.b64encode(data).decode())
    assert bitmap.mode == "RGB"
    assert bitmap.size == (64, 48)
    r, g, b = bitmap.getpixel((32, 24))
    assert abs(r - 200) <= 12 and abs(g - 30) <= 12 and abs(b - 10) <= 12
