import numpy as np
import pytest

from framelabel import Annotator
from framelabel.tracker import load_tracker_config

WIDTH, HEIGHT = 640, 480
BACKGROUND = (100, 100, 100)  # gray: zero saturation, masked out of histograms
BLUE = (150, 60, 60)          # BGR; hue 120, S 153, V 150
GREEN = (60, 150, 60)         # BGR; hue 60


def _make_frame(objects=(), width=WIDTH, height=HEIGHT, background=BACKGROUND):
    img = np.full((height, width, 3), background, dtype=np.uint8)
    for (x, y, w, h), color in objects:
        img[y:y + h, x:x + w] = color
    return img


def _moving_square(count=5, start=(100, 100), step=(5, 0), size=50, color=BLUE):
    return [
        _make_frame([((start[0] + i * step[0], start[1] + i * step[1], size, size), color)])
        for i in range(count)
    ]


@pytest.fixture
def make_frame():
    return _make_frame


@pytest.fixture
def moving_square():
    return _moving_square


@pytest.fixture
def config():
    cfg = load_tracker_config()
    cfg["session"]["frame_interval"] = 0.0
    return cfg


@pytest.fixture
def annotator(config):
    return Annotator.import_frames(_moving_square(), config=config)
