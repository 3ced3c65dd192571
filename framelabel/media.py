from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import List, Optional, Union

import cv2
import numpy as np

from .errors import FrameLabelError
from .store import AnnotationStore, Frame, ImageSource

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


# -----------------------------
# Frame sources
# -----------------------------
def _natural_key(path: Path):
    # image2.png sorts before image10.png
    return [int(tok) if tok.isdigit() else tok.lower() for tok in re.split(r"(\d+)", path.name)]


def list_image_files(directory: Union[str, Path]) -> List[Path]:
    directory = Path(directory)
    files = [p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES]
    return sorted(files, key=_natural_key)


def read_video_frames(
    video_path: Union[str, Path],
    step: int = 1,
    max_frames: Optional[int] = None,
) -> List[np.ndarray]:
    """Decode a video sequentially, keeping every `step`-th frame."""
    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise FrameLabelError(f"Failed to open video: {video_path}")
    frames: List[np.ndarray] = []
    idx = 0
    try:
        while max_frames is None or len(frames) < max_frames:
            ok, frame = cap.read()
            if not ok:
                break
            if idx % step == 0:
                frames.append(frame)
            idx += 1
    finally:
        cap.release()
    logger.info("Decoded %d frame(s) from %s", len(frames), video_path)
    return frames


def load_frame_sources(
    source: Union[str, Path],
    step: int = 1,
    max_frames: Optional[int] = None,
) -> List[ImageSource]:
    """
    Frames for `import_frames`: a directory yields its image paths (decoded
    lazily, in natural order); anything else is opened as a video.
    """
    if step < 1:
        raise ValueError("step must be >= 1")
    path = Path(source)
    if path.is_dir():
        files: List[ImageSource] = list(list_image_files(path)[::step])
        return files[:max_frames] if max_frames is not None else files
    if not path.exists():
        raise FrameLabelError(f"No such video or image directory: {path}")
    return list(read_video_frames(path, step=step, max_frames=max_frames))


# -----------------------------
# Annotation file writer
# -----------------------------
class AnnotationWriter:
    """Writes annotations as tab-separated lines, one per box, in frame order:
        frame  identity  label  x  y  w  h  r  g  b  a
    Positions are normalized to the frame size.
    """
    def __init__(self, out_path: Union[str, Path]):
        self.out_path = Path(out_path)
        self._lines: List[str] = []
        self.count = 0

    def write_frame(self, frame: Frame) -> None:
        for box in frame.boxes:
            x, y, w, h = box.position
            r, g, b, a = box.color
            self._lines.append(
                f"{frame.index}\t{box.identity}\t{box.label}\t"
                f"{x:.6f}\t{y:.6f}\t{w:.6f}\t{h:.6f}\t{r}\t{g}\t{b}\t{a}\n"
            )
            self.count += 1

    def write_store(self, store: AnnotationStore) -> None:
        for frame in store.frames():
            self.write_frame(frame)

    def close(self) -> None:
        self.out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.out_path, "w", encoding="utf-8") as f:
            f.writelines(self._lines)
        logger.info("Wrote %d annotation(s) to %s", self.count, self.out_path)
