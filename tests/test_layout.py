import math

import pytest
import skia

from watermark.layout import (
    Anchor,
    LayoutResult,
    apply_rotation,
    calculate_position,
    degrees_to_radians,
    parse_anchor,
    rotate_point,
)
from watermark.scaling import get_responsive_multiplier, scale_font_size, scale_logo_size
from watermark.utils.exceptions import ConfigurationError


def test_bottom_right():
    assert calculate_position(1000, 800, 100, 50, "bottom-right", 20, 0, 0) == (880, 730)


def test_center_ignores_padding():
    assert calculate_position(1000, 800, 100, 50, "center", 20, 0, 0) == (450, 375)


@pytest.mark.parametrize(
    "anchor,expected",
    [
        ("top-left", (20, 20)),
        ("top-center", (450, 20)),
        ("top-right", (880, 20)),
        ("center-left", (20, 375)),
        ("center-right", (880, 375)),
        ("bottom-left", (20, 730)),
        ("bottom-center", (450, 730)),
    ],
)
def test_all_anchors(anchor, expected):
    assert calculate_position(1000, 800, 100, 50, anchor, 20) == expected


def test_offsets_are_not_clamped():
    result = calculate_position(1000, 800, 100, 50, Anchor.TOP_LEFT, 20, -500, 2000)
    assert isinstance(result, LayoutResult)
    assert (result.x, result.y) == (-480, 2020)


def test_invalid_anchor():
    with pytest.raises(ConfigurationError):
        parse_anchor("middle")
    assert parse_anchor(" Bottom-Right ") is Anchor.BOTTOM_RIGHT


def test_responsive_multiplier():
    assert get_responsive_multiplier(1920, 1.0) == 1.0
    assert get_responsive_multiplier(3840, 1.0) == 2.0
    assert get_responsive_multiplier(960, 0.5) == 0.25
    for width in (1, 800, 1920, 8000):
        assert get_responsive_multiplier(width) == 1.0
        assert get_responsive_multiplier(width, 0) == 1.0
        assert get_responsive_multiplier(width, -2) == 1.0


def test_scaled_font_size_has_floor():
    assert scale_font_size(48, 1.0) == 48
    assert scale_font_size(48, 2.0) == 96
    assert scale_font_size(48, 0.1) == 12


def test_logo_size_keeps_aspect_ratio():
    assert scale_logo_size(1000, 0.15, 1.0, 200, 100) == (150, 75)
    assert scale_logo_size(1920, 0.1, 2.0, 100, 100) == (384, 384)


def test_degrees_to_radians():
    assert degrees_to_radians(180) == pytest.approx(math.pi)
    assert degrees_to_radians(-45) == pytest.approx(-math.pi / 4)


def test_rotate_point_matches_canvas_rotation():
    canvas_matrix = skia.Matrix()
    canvas_matrix.setRotate(30, 100, 50)
    mapped = canvas_matrix.mapXY(180, 20)
    assert rotate_point(180, 20, 100, 50, 30) == pytest.approx((mapped.x(), mapped.y()), abs=1e-3)


def test_apply_rotation_rotates_around_center():
    surface = skia.Surface(200, 200)
    with surface as canvas:
        apply_rotation(canvas, 90, 100, 100)
        matrix = canvas.getTotalMatrix()
    point = matrix.mapXY(150, 100)
    assert (point.x(), point.y()) == pytest.approx((100, 150), abs=1e-3)


def test_zero_rotation_leaves_canvas_untouched():
    surface = skia.Surface(10, 10)
    with surface as canvas:
        apply_rotation(canvas, 0, 5, 5)
        assert canvas.getTotalMatrix().isIdentity()
