from __future__ import annotations
import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import cv2
import numpy as np
import yaml

from .geometry import Window, clamp_bbox, normalize_rect, to_hsv, to_pixel_window
from .store import Box

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "histogram": {
        "bins": 180,
        "range": [0, 180],
        "hue": [0, 180],
        "saturation": [30, 180],
        "value": [0, 180],
    },
    "meanshift": {"max_iter": 10, "epsilon": 1.0},
    "session": {"workers": 4, "frame_interval": 0.0},
    "labels": [
        {"label": "label1", "color": [255, 0, 0, 255]},
        {"label": "label2", "color": [0, 255, 0, 255]},
    ],
}


# -----------------------------
# Config loading (tracker.yaml)
# -----------------------------
def load_tracker_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load tracker config from `path`, or tracker.yaml next to this file.
    Supported keys (all optional, missing ones keep DEFAULT_CONFIG):
      histogram: bins, range, hue, saturation, value
      meanshift: max_iter, epsilon
      session: workers, frame_interval
      labels: list of {label, color}
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path = Path(path) if path is not None else Path(__file__).with_name("tracker.yaml")
    if not cfg_path.exists():
        if path is not None:
            logger.warning("Tracker config %s not found; using defaults", cfg_path)
        return config

    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Ignoring malformed tracker config %s: %s", cfg_path, exc)
        return config
    if not isinstance(loaded, dict):
        logger.warning("Ignoring tracker config %s: top level is not a mapping", cfg_path)
        return config

    for section in ("histogram", "meanshift", "session"):
        if isinstance(loaded.get(section), dict):
            config[section].update(loaded[section])
    if isinstance(loaded.get("labels"), list):
        config["labels"] = loaded["labels"]
    return config


@dataclass(frozen=True)
class HistogramParams:
    bins: int = 180
    hue_range: Tuple[float, float] = (0, 180)
    hue: Tuple[float, float] = (0, 180)
    saturation: Tuple[float, float] = (30, 180)
    value: Tuple[float, float] = (0, 180)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "HistogramParams":
        h = config.get("histogram", {})
        return cls(
            bins=int(h.get("bins", cls.bins)),
            hue_range=tuple(h.get("range", cls.hue_range)),  # type: ignore[arg-type]
            hue=tuple(h.get("hue", cls.hue)),  # type: ignore[arg-type]
            saturation=tuple(h.get("saturation", cls.saturation)),  # type: ignore[arg-type]
            value=tuple(h.get("value", cls.value)),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class MeanShiftParams:
    max_iter: int = 10
    epsilon: float = 1.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "MeanShiftParams":
        m = config.get("meanshift", {})
        return cls(max_iter=int(m.get("max_iter", cls.max_iter)), epsilon=float(m.get("epsilon", cls.epsilon)))

    @property
    def term_criteria(self) -> Tuple[int, int, float]:
        # Stop after max_iter shifts or once the window moves less than epsilon pixels
        return (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, self.max_iter, self.epsilon)


# -----------------------------
# Histogram initialization
# -----------------------------
def hue_histogram(hsv_roi: np.ndarray, params: HistogramParams = HistogramParams()) -> np.ndarray:
    """
    1-D hue histogram of an HSV crop, rescaled to 0..255.
    Pixels outside the hue/saturation/value mask ranges (grays, near-black)
    are masked out; a fully masked crop yields an all-zero histogram.
    """
    lower = (float(params.hue[0]), float(params.saturation[0]), float(params.value[0]))
    upper = (float(params.hue[1]), float(params.saturation[1]), float(params.value[1]))
    mask = cv2.inRange(hsv_roi, lower, upper)
    hist = cv2.calcHist([hsv_roi], [0], mask, [params.bins], list(params.hue_range))
    cv2.normalize(hist, hist, 0, 255, cv2.NORM_MINMAX)
    return hist


def initialize_histograms(
    image: np.ndarray,
    boxes: Iterable[Box],
    width: int,
    height: int,
    params: HistogramParams = HistogramParams(),
) -> Dict[str, Tuple[Window, np.ndarray]]:
    """Seed window and hue histogram per identity from the boxes on one frame."""
    hsv = to_hsv(image)
    seeds: Dict[str, Tuple[Window, np.ndarray]] = {}
    for box in boxes:
        x, y, w, h = window = to_pixel_window(box.position, width, height)
        roi = hsv[y:y + h, x:x + w]
        seeds[box.identity] = (window, hue_histogram(roi, params))
    return seeds


# -----------------------------
# Mean-shift tracker
# -----------------------------
@dataclass(frozen=True)
class TrackResult:
    identity: str
    window: Window
    iterations: int
    held: bool = False


class MeanShiftTracker:
    """
    Per-object tracker: back-projects the seed hue histogram on each new frame
    and shifts the search window to the local mode of the likelihood.
    API:
      rescale(width, height)   (carry the window into a frame of another size)
      update(hsv_frame) -> TrackResult
      hold() -> TrackResult   (keep the window when a frame cannot be used)
      to_box(width, height) -> Box
    Drift or collapse is not detected; the window simply follows the mass.
    """

    def __init__(
        self,
        box: Box,
        window: Window,
        histogram: np.ndarray,
        hist_params: HistogramParams = HistogramParams(),
        params: MeanShiftParams = MeanShiftParams(),
        frame_size: Optional[Tuple[int, int]] = None,
    ):
        self.box = box
        self.window: Window = tuple(int(v) for v in window)  # type: ignore[assignment]
        self.frame_size = frame_size
        self.histogram = histogram
        self.hist_params = hist_params
        self.params = params

    @property
    def identity(self) -> str:
        return self.box.identity

    def back_project(self, hsv: np.ndarray) -> np.ndarray:
        return cv2.calcBackProject([hsv], [0], self.histogram, list(self.hist_params.hue_range), 1)

    def rescale(self, width: int, height: int) -> Window:
        """Scale the window from the last frame size seen to (width, height)."""
        if self.frame_size is not None and self.frame_size != (width, height):
            old_w, old_h = self.frame_size
            sx, sy = width / float(old_w), height / float(old_h)
            x, y, w, h = self.window
            self.window = clamp_bbox((x * sx, y * sy, w * sx, h * sy), width, height)  # type: ignore[arg-type]
            logger.debug(
                "Rescaled window of %s from %dx%d to %dx%d", self.identity, old_w, old_h, width, height
            )
        self.frame_size = (width, height)
        return self.window

    def update(self, hsv: np.ndarray) -> TrackResult:
        h_img, w_img = hsv.shape[:2]
        self.rescale(w_img, h_img)
        start = clamp_bbox(self.window, w_img, h_img)
        prob = self.back_project(hsv)
        iterations, window = cv2.meanShift(prob, start, self.params.term_criteria)
        self.window = clamp_bbox(tuple(window), w_img, h_img)  # type: ignore[arg-type]
        return TrackResult(self.identity, self.window, int(iterations))

    def hold(self) -> TrackResult:
        return TrackResult(self.identity, self.window, 0, held=True)

    def to_box(self, width: int, height: int) -> Box:
        window = clamp_bbox(self.window, width, height)
        return self.box.with_position(normalize_rect(window, width, height))


def seed_trackers(
    image: np.ndarray,
    boxes: Iterable[Box],
    width: int,
    height: int,
    hist_params: HistogramParams = HistogramParams(),
    params: MeanShiftParams = MeanShiftParams(),
) -> Dict[str, MeanShiftTracker]:
    boxes = list(boxes)
    seeds = initialize_histograms(image, boxes, width, height, hist_params)
    return {
        b.identity: MeanShiftTracker(
            b, seeds[b.identity][0], seeds[b.identity][1], hist_params, params, frame_size=(width, height)
        )
        for b in boxes
    }
