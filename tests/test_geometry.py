import numpy as np
import pytest

from framelabel.geometry import (
    canonical_rect,
    clamp_bbox,
    denormalize_rect,
    is_valid_color,
    normalize_rect,
    rect_contains_point,
    rect_contains_rect,
    to_hsv,
    to_pixel_window,
)


@pytest.mark.parametrize(
    "rect,dims",
    [
        ((100, 100, 50, 50), (640, 480)),
        ((0, 0, 1920, 1080), (1920, 1080)),
        ((13.5, 7.25, 0.5, 99.75), (333, 217)),
    ],
)
def test_normalize_round_trip(rect, dims):
    back = denormalize_rect(normalize_rect(rect, *dims), *dims)
    assert back == pytest.approx(rect, abs=1e-9)


def test_normalize_rejects_unknown_dimensions():
    with pytest.raises(ValueError):
        normalize_rect((0, 0, 1, 1), 0, 480)


def test_canonical_rect_flips_negative_drag():
    assert canonical_rect((150, 120, -50, -20)) == (100.0, 100.0, 50.0, 20.0)
    assert canonical_rect((10, 10, 5, 5)) == (10.0, 10.0, 5.0, 5.0)


def test_clamp_bbox_keeps_window_inside_and_non_empty():
    assert clamp_bbox((-10, -10, 30, 30), 640, 480) == (0, 0, 30, 30)
    assert clamp_bbox((630, 470, 50, 50), 640, 480) == (630, 470, 10, 10)
    assert clamp_bbox((700, 500, 0, 0), 640, 480) == (639, 479, 1, 1)


def test_to_pixel_window_rounds_and_clamps():
    assert to_pixel_window((0.15625, 0.2083333, 0.078125, 0.1041667), 640, 480) == (100, 100, 50, 50)
    assert to_pixel_window((0.9, 0.9, 0.2, 0.2), 100, 100) == (90, 90, 10, 10)


def test_rect_containment_is_edge_inclusive():
    band = (100, 100, 200, 100)
    assert rect_contains_rect(band, (100, 100, 200, 100))
    assert rect_contains_rect(band, (150, 120, 20, 20))
    assert not rect_contains_rect(band, (99, 120, 20, 20))    # left
    assert not rect_contains_rect(band, (150, 99, 20, 20))    # top
    assert not rect_contains_rect(band, (290, 120, 20, 20))   # right
    assert not rect_contains_rect(band, (150, 190, 20, 20))   # bottom


def test_rect_contains_point_edges():
    rect = (10, 10, 10, 10)
    assert rect_contains_point(rect, (10, 10))
    assert rect_contains_point(rect, (20, 20))
    assert not rect_contains_point(rect, (20.5, 15))


def test_to_hsv_accepts_gray_and_bgra():
    gray = np.full((4, 6), 128, dtype=np.uint8)
    bgra = np.zeros((4, 6, 4), dtype=np.uint8)
    assert to_hsv(gray).shape == (4, 6, 3)
    assert to_hsv(bgra).shape == (4, 6, 3)
    assert to_hsv(gray)[..., 1].max() == 0


def test_is_valid_color():
    assert is_valid_color((255, 0, 0, 255))
    assert is_valid_color([0, 0, 0, 0])
    assert not is_valid_color((255, 0, 0))
    assert not is_valid_color((256, 0, 0, 255))
    assert not is_valid_color((0.5, 0, 0, 255))
    assert not is_valid_color("red")
    assert not is_valid_color(None)
