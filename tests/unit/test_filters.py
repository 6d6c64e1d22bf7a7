import numpy as np
import pytest
from PIL import Image

from src.core.exceptions import ExtractionError
from src.engines.overlay import filters
from src.engines.overlay.schemas import CropRegion, FitPolicy, ToneAdjustment

IDENTITY = [[1, 0, 0], [0, 1, 0], [0, 0, 1]]


def test_recombine_projects_red_channel():
    image = Image.new("RGB", (4, 4), (200, 40, 20))
    out = filters.recombine(image, [[1.0, -0.5, -0.5]] * 3)
    # 200 - 20 - 10
    assert out.getpixel((0, 0)) == (170, 170, 170)


def test_recombine_clips_to_byte_range():
    image = Image.new("RGB", (2, 2), (255, 255, 255))
    out = filters.recombine(image, [[2, 0, 0], [-1, 0, 0], [0, 0, 1]])
    assert out.getpixel((0, 0)) == (255, 0, 255)


def test_recombine_keeps_alpha():
    image = Image.new("RGBA", (2, 2), (10, 20, 30, 77))
    out = filters.recombine(image, IDENTITY)
    assert out.mode == "RGBA"
    assert out.getpixel((1, 1)) == (10, 20, 30, 77)


def test_recombine_rejects_grayscale():
    with pytest.raises(ExtractionError):
        filters.recombine(Image.new("L", (4, 4), 128), IDENTITY)


def test_threshold_is_binary_and_monotonic():
    gradient = Image.fromarray(np.tile(np.arange(256, dtype=np.uint8), (4, 1)))
    low = np.asarray(filters.threshold(gradient, 100))
    high = np.asarray(filters.threshold(gradient, 200))

    assert set(np.unique(low)) <= {0, 255}
    assert set(np.unique(high)) <= {0, 255}
    # Raising the cutoff never turns a black pixel white
    assert np.all(high <= low)
    assert np.count_nonzero(high) < np.count_nonzero(low)


def test_threshold_rejects_out_of_range_cutoff():
    with pytest.raises(ExtractionError):
        filters.threshold(Image.new("L", (2, 2)), 300)


def test_negate_flips_binary():
    image = Image.new("L", (2, 1))
    image.putpixel((0, 0), 255)
    out = filters.negate(image)
    assert out.getpixel((0, 0)) == 0
    assert out.getpixel((1, 0)) == 255


def test_linear_stretch():
    image = Image.fromarray(np.array([[0, 128, 200, 255]], dtype=np.uint8))
    out = np.asarray(filters.linear_stretch(image, 2.0))
    assert out.tolist() == [[0, 0, 144, 254]]


def test_modulate_identity_is_noop():
    image = Image.new("RGB", (3, 3), (12, 34, 56))
    out = filters.modulate(image, ToneAdjustment())
    assert out.getpixel((0, 0)) == (12, 34, 56)


def test_modulate_brightness_saturates_white():
    image = Image.new("RGB", (3, 3), (200, 200, 200))
    out = filters.modulate(image, ToneAdjustment(brightness=2.0))
    assert out.getpixel((1, 1)) == (255, 255, 255)


def test_crop_fraction():
    image = Image.new("RGB", (100, 200))
    out = filters.crop_fraction(image, CropRegion(left=0.0, top=0.5, right=0.5, bottom=1.0))
    assert out.size == (50, 100)


def test_crop_fraction_collapsing_to_nothing_raises():
    image = Image.new("RGB", (10, 10))
    with pytest.raises(ExtractionError):
        filters.crop_fraction(image, CropRegion(left=0.0, top=0.0, right=0.01, bottom=1.0))


def test_zero_area_bitmap_raises():
    with pytest.raises(ExtractionError):
        filters.grayscale(Image.new("RGB", (0, 10)))


def test_mask_to_layer_white_opaque_black_transparent():
    mask = Image.new("L", (2, 1))
    mask.putpixel((0, 0), 255)
    layer = filters.mask_to_layer(mask)
    assert layer.mode == "RGBA"
    assert layer.getpixel((0, 0)) == (255, 255, 255, 255)
    assert layer.getpixel((1, 0))[3] == 0


@pytest.mark.parametrize("fit", list(FitPolicy))
def test_resize_to_fit_always_hits_target(fit):
    out = filters.resize_to_fit(Image.new("RGB", (300, 100), (255, 0, 0)), (120, 240), fit)
    assert out.size == (120, 240)
    assert out.mode == "RGBA"


def test_resize_contain_pads_transparent():
    out = filters.resize_to_fit(Image.new("RGB", (100, 100), (255, 0, 0)), (100, 200), FitPolicy.CONTAIN)
    assert out.getpixel((50, 5))[3] == 0
    assert out.getpixel((50, 100)) == (255, 0, 0, 255)


def test_resize_cover_fills_target():
    out = filters.resize_to_fit(Image.new("RGB", (100, 100), (255, 0, 0)), (100, 200), FitPolicy.COVER)
    assert out.getpixel((50, 5)) == (255, 0, 0, 255)


def test_coverage_counts_opaque_pixels():
    layer = Image.new("RGBA", (10, 10), (255, 255, 255, 0))
    layer.paste((255, 255, 255, 255), (0, 0, 5, 10))
    assert filters.coverage(layer) == 0.5
    assert filters.coverage(Image.new("L", (4, 4), 255)) == 1.0


def test_rotate_hue_turns_red_green():
    out = filters.rotate_hue(Image.new("RGB", (4, 4), (255, 0, 0)), 120)
    r, g, b = out.getpixel((1, 1))
    assert g >= 250
    assert r <= 5 and b <= 5


def test_rotate_hue_keeps_alpha_and_ignores_gray():
    out = filters.rotate_hue(Image.new("RGBA", (2, 2), (255, 0, 0, 90)), 240)
    assert out.mode == "RGBA"
    assert out.getpixel((0, 0))[3] == 90
    assert out.getpixel((0, 0))[2] >= 250

    gray = Image.new("L", (2, 2), 77)
    assert filters.rotate_hue(gray, 90).tobytes() == gray.tobytes()


def test_modulate_hue_changes_threshold_result():
    red = Image.new("RGB", (4, 4), (255, 0, 0))
    plain = filters.threshold(filters.modulate(red, ToneAdjustment()), 100)
    rotated = filters.threshold(filters.modulate(red, ToneAdjustment(hue=120)), 100)
    assert plain.getpixel((0, 0)) == 0
    assert rotated.getpixel((0, 0)) == 255
