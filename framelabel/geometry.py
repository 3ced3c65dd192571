from __future__ import annotations
from typing import Tuple
import cv2
import numpy as np

Rect = Tuple[float, float, float, float]
Position = Tuple[float, float, float, float]
Window = Tuple[int, int, int, int]
Color = Tuple[int, int, int, int]


# -----------------------------
# Rectangles
# -----------------------------
def canonical_rect(rect: Rect) -> Rect:
    """Flip negative extents so (x, y) is the top-left corner.

    A rectangle dragged up or left arrives with negative width/height.
    """
    x, y, w, h = map(float, rect)
    if w < 0:
        x, w = x + w, -w
    if h < 0:
        y, h = y + h, -h
    return (x, y, w, h)


def clamp_bbox(xywh: Window, w_img: int, h_img: int) -> Window:
    """Clamp bbox to image bounds and ensure minimum size 1x1."""
    x, y, w, h = (int(round(v)) for v in xywh)
    x = max(0, min(x, w_img - 1))
    y = max(0, min(y, h_img - 1))
    w = max(1, min(w, w_img - x))
    h = max(1, min(h, h_img - y))
    return (x, y, w, h)


def normalize_rect(rect_px: Rect, width: int, height: int) -> Position:
    """Pixel (x, y, w, h) -> fractions of the frame size."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Frame dimensions must be positive, got {width}x{height}")
    x, y, w, h = map(float, rect_px)
    return (x / width, y / height, w / width, h / height)


def denormalize_rect(position: Position, width: int, height: int) -> Rect:
    x, y, w, h = map(float, position)
    return (x * width, y * height, w * width, h * height)


def to_pixel_window(position: Position, width: int, height: int) -> Window:
    """Normalized position -> integer search window clamped inside the frame."""
    return clamp_bbox(denormalize_rect(position, width, height), width, height)


def rect_contains_rect(outer: Rect, inner: Rect) -> bool:
    """True when all four edges of `inner` lie inside `outer` (edges inclusive)."""
    ox, oy, ow, oh = outer
    ix, iy, iw, ih = inner
    return (
        ix >= ox
        and iy >= oy
        and ix + iw <= ox + ow
        and iy + ih <= oy + oh
    )


def rect_contains_point(rect: Rect, point: Tuple[float, float]) -> bool:
    x, y, w, h = rect
    px, py = point
    return x <= px <= x + w and y <= py <= y + h


# -----------------------------
# Color
# -----------------------------
def to_hsv(image: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or single-channel frame to OpenCV HSV (H in 0..179)."""
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return cv2.cvtColor(image, cv2.COLOR_BGR2HSV)


def is_valid_color(color) -> bool:
    """RGBA with each component an integer in 0..255."""
    try:
        values = tuple(color)
    except TypeError:
        return False
    if len(values) != 4:
        return False
    return all(
        isinstance(v, (int, float, np.integer, np.floating))
        and float(v).is_integer()
        and 0 <= v <= 255
        for v in values
    )
