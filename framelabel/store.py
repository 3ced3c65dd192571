"""
Annotation store: the timeline of frames and the labeled boxes on them.

Logical objects live in an arena keyed by identity (label and color); each
frame only maps identity -> normalized position. A `Box` is materialized from
both when a frame is read, so one identity can never appear twice on a frame.
"""
from __future__ import annotations
import logging
import math
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .errors import FrameIndexError, InvalidBoxError, UnknownIdentityError
from .geometry import Color, Position, is_valid_color

logger = logging.getLogger(__name__)

ImageSource = Union[np.ndarray, str, Path]

# Float slack allowed on the [0, 1] bounds of a normalized position
_TOLERANCE = 1e-6


@dataclass(frozen=True)
class Box:
    position: Position
    color: Color
    label: str
    identity: str

    def with_position(self, position: Sequence[float]) -> "Box":
        return replace(self, position=validate_position(position))


@dataclass(frozen=True)
class Frame:
    """Read-only snapshot of one timeline entry."""
    index: int
    image: ImageSource
    width: int
    height: int
    boxes: Tuple[Box, ...] = ()

    @property
    def identities(self) -> FrozenSet[str]:
        return frozenset(b.identity for b in self.boxes)

    def box(self, identity: str) -> Optional[Box]:
        for b in self.boxes:
            if b.identity == identity:
                return b
        return None

    def load_image(self) -> Optional[np.ndarray]:
        return load_image(self.image, self.width, self.height)


def load_image(source: ImageSource, width: int, height: int) -> Optional[np.ndarray]:
    """Decode a frame and bring it to the size recorded at import.

    Returns None when the source cannot be decoded.
    """
    if isinstance(source, np.ndarray):
        img = source
    else:
        img = cv2.imread(str(source), cv2.IMREAD_COLOR)
        if img is None:
            logger.warning("Failed to decode frame image: %s", source)
            return None
    if img.size == 0:
        return None
    if width > 0 and height > 0 and img.shape[:2] != (height, width):
        img = cv2.resize(img, (width, height), interpolation=cv2.INTER_AREA)
    return img


def validate_position(position: Sequence[float]) -> Position:
    try:
        values = tuple(float(v) for v in position)
    except (TypeError, ValueError) as exc:
        raise InvalidBoxError(f"Position must be 4 numbers, got {position!r}") from exc
    if len(values) != 4 or not all(math.isfinite(v) for v in values):
        raise InvalidBoxError(f"Position must be 4 finite numbers, got {position!r}")
    x, y, w, h = values
    if w < 0 or h < 0:
        raise InvalidBoxError(f"Position has negative size: {values}")
    if x < -_TOLERANCE or y < -_TOLERANCE or x + w > 1 + _TOLERANCE or y + h > 1 + _TOLERANCE:
        raise InvalidBoxError(f"Position outside the normalized frame: {values}")
    return values


def _validate_box(box: Box) -> Box:
    if not isinstance(box.identity, str) or not box.identity:
        raise InvalidBoxError("Box identity must be a non-empty string")
    if not is_valid_color(box.color):
        raise InvalidBoxError(f"Color must be RGBA in 0..255, got {box.color!r}")
    return Box(
        position=validate_position(box.position),
        color=tuple(int(c) for c in box.color),  # type: ignore[arg-type]
        label=str(box.label),
        identity=box.identity,
    )


@dataclass
class _ObjectRecord:
    label: str
    color: Color


@dataclass
class _FrameSlot:
    image: ImageSource
    width: int
    height: int
    positions: Dict[str, Position] = field(default_factory=dict)


class AnnotationStore:
    """Single source of truth for box positions across the timeline.

    Geometry is stored normalized; callers convert from pixels with the frame
    size before writing. All mutations hold `lock`, so a batch committed with
    `commit_frame` is seen either entirely or not at all.
    """

    def __init__(self, slots: Sequence[_FrameSlot] = ()):
        self._slots: List[_FrameSlot] = list(slots)
        self._objects: Dict[str, _ObjectRecord] = {}
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._slots)

    # ---------------- reads ----------------
    def frame_size(self, index: int) -> Tuple[int, int]:
        slot = self._slot(index)
        return slot.width, slot.height

    def get_frame(self, index: int) -> Frame:
        with self.lock:
            slot = self._slot(index)
            boxes = tuple(self._materialize(i, p) for i, p in slot.positions.items())
            return Frame(index=index, image=slot.image, width=slot.width, height=slot.height, boxes=boxes)

    def frames(self) -> List[Frame]:
        with self.lock:
            return [self.get_frame(i) for i in range(len(self._slots))]

    def frames_with(self, identity: str) -> List[int]:
        with self.lock:
            return [i for i, slot in enumerate(self._slots) if identity in slot.positions]

    def identities(self) -> FrozenSet[str]:
        with self.lock:
            return frozenset(self._objects)

    # ---------------- writes ----------------
    def add_box(self, frame_index: int, box: Box) -> Box:
        """Insert a box; an existing box with the same identity on that frame is replaced."""
        box = _validate_box(box)
        with self.lock:
            slot = self._slot(frame_index)
            self._objects[box.identity] = _ObjectRecord(box.label, box.color)
            slot.positions[box.identity] = box.position
        return box

    def update_box_geometry(self, frame_index: int, identity: str, position: Sequence[float]) -> Box:
        position = validate_position(position)
        with self.lock:
            slot = self._slot(frame_index)
            if identity not in slot.positions:
                raise UnknownIdentityError(f"No box {identity!r} on frame {frame_index}")
            slot.positions[identity] = position
            return self._materialize(identity, position)

    def commit_frame(self, frame_index: int, boxes: Iterable[Box]) -> None:
        """Write a batch of boxes into one frame atomically (insert or replace per identity)."""
        validated = [_validate_box(b) for b in boxes]
        with self.lock:
            slot = self._slot(frame_index)
            for box in validated:
                self._objects[box.identity] = _ObjectRecord(box.label, box.color)
                slot.positions[box.identity] = box.position

    def delete_boxes(self, identities: Iterable[str], frame_range: Iterable[int]) -> int:
        """Remove boxes of `identities` from every frame in `frame_range`; returns count removed."""
        targets = set(identities)
        removed = 0
        with self.lock:
            indices = list(frame_range)
            for idx in indices:
                self._slot(idx)
            for idx in indices:
                positions = self._slots[idx].positions
                for identity in targets & positions.keys():
                    del positions[identity]
                    removed += 1
            self._drop_orphans(targets)
        return removed

    # ---------------- internals ----------------
    def _slot(self, index: int) -> _FrameSlot:
        if not isinstance(index, (int, np.integer)) or not 0 <= index < len(self._slots):
            raise FrameIndexError(f"Frame index {index} out of range 0..{len(self._slots) - 1}")
        return self._slots[index]

    def _materialize(self, identity: str, position: Position) -> Box:
        record = self._objects[identity]
        return Box(position=position, color=record.color, label=record.label, identity=identity)

    def _drop_orphans(self, identities: Iterable[str]) -> None:
        for identity in identities:
            if identity in self._objects and not any(identity in s.positions for s in self._slots):
                del self._objects[identity]


def _frame_dims(source: ImageSource, fallback: Tuple[int, int]) -> Tuple[int, int]:
    if isinstance(source, np.ndarray):
        h, w = source.shape[:2]
        return int(w), int(h)
    img = cv2.imread(str(source), cv2.IMREAD_UNCHANGED)
    if img is None:
        logger.warning("Cannot read size of %s; reusing %dx%d", source, *fallback)
        return fallback
    h, w = img.shape[:2]
    return int(w), int(h)


def import_frames(
    images: Sequence[ImageSource],
    size: Optional[Tuple[int, int]] = None,
) -> AnnotationStore:
    """Build the timeline from decoded frames (arrays) or image paths.

    `size` forces one (width, height) for every frame; otherwise each frame's
    size comes from its own pixels. An unreadable path inherits the previous
    frame's size, or (0, 0) when it is the first.
    """
    slots: List[_FrameSlot] = []
    last = (0, 0)
    for source in images:
        if size is not None:
            dims = (int(size[0]), int(size[1]))
        else:
            dims = _frame_dims(source, last)
        last = dims
        slots.append(_FrameSlot(image=source, width=dims[0], height=dims[1]))
    logger.info("Imported %d frames", len(slots))
    return AnnotationStore(slots)
