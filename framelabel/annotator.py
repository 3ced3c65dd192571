"""
Annotator: the entry point used by a UI or script.

Wires the store, selection engine, deletion and tracking session together and
keeps the current frame cursor. Rendering, pointer handling and video decoding
stay with the caller.
"""
from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .deletion import DeleteScope, delete_labels
from .errors import UnknownIdentityError
from .geometry import Color, Rect, canonical_rect, clamp_bbox, denormalize_rect, normalize_rect
from .selection import LabelTemplate, SelectionEngine
from .session import TrackingSession
from .store import AnnotationStore, Box, Frame, ImageSource, import_frames
from .tracker import load_tracker_config


@dataclass(frozen=True)
class LabelPreset:
    label: str
    color: Color


@dataclass(frozen=True)
class Overlay:
    """Boxes of one frame split the way they are rendered."""
    plain: Tuple[Box, ...]
    selected: Tuple[Box, ...]


class Annotator:
    """
    Threading: while a background session runs, the tracking thread moves
    `frame_index` to each committed frame. The cursor is read and written
    under its own lock, and every operation on "the current frame" reads it
    once, so a single call never mixes two frames. Callers that must keep
    the cursor still should stop tracking first.
    """

    def __init__(self, store: AnnotationStore, config: Optional[Mapping[str, Any]] = None):
        self.store = store
        self.config = config if config is not None else load_tracker_config()
        self.selection = SelectionEngine(store)
        self.session = TrackingSession(store, self.config, on_frame=self._follow_tracking)
        self._cursor_lock = threading.Lock()
        self._frame_index = 0
        self.presets = [
            LabelPreset(str(p["label"]), tuple(int(c) for c in p["color"]))  # type: ignore[arg-type]
            for p in self.config.get("labels", [])
        ]

    @classmethod
    def import_frames(
        cls,
        images: Sequence[ImageSource],
        size: Optional[Tuple[int, int]] = None,
        config: Optional[Mapping[str, Any]] = None,
    ) -> "Annotator":
        return cls(import_frames(images, size=size), config=config)

    # ---------------- frames ----------------
    @property
    def frame_index(self) -> int:
        with self._cursor_lock:
            return self._frame_index

    @frame_index.setter
    def frame_index(self, index: int) -> None:
        with self._cursor_lock:
            self._frame_index = index

    @property
    def frame_count(self) -> int:
        return len(self.store)

    @property
    def current_frame(self) -> Frame:
        return self.store.get_frame(self.frame_index)

    def get_frame(self, index: int) -> Frame:
        return self.store.get_frame(index)

    def seek(self, index: int) -> int:
        index = max(0, min(len(self.store) - 1, int(index)))
        self.frame_index = index
        return index

    def next_frame(self) -> int:
        return self.seek(self.frame_index + 1)

    def previous_frame(self) -> int:
        return self.seek(self.frame_index - 1)

    def overlay(self, index: Optional[int] = None) -> Overlay:
        frame = self.store.get_frame(self.frame_index if index is None else index)
        selected = self.selection.selected
        return Overlay(
            plain=tuple(b for b in frame.boxes if b.identity not in selected),
            selected=tuple(b for b in frame.boxes if b.identity in selected),
        )

    # ---------------- boxes ----------------
    def add_box(self, frame_index: int, box: Box) -> Box:
        return self.store.add_box(frame_index, box)

    def update_box_geometry(self, frame_index: int, identity: str, position: Sequence[float]) -> Box:
        return self.store.update_box_geometry(frame_index, identity, position)

    def delete_boxes(self, identities: Iterable[str], frame_range: Iterable[int]) -> int:
        return self.store.delete_boxes(identities, frame_range)

    def choose_label(
        self,
        label: Optional[str] = None,
        color: Optional[Color] = None,
    ) -> LabelTemplate:
        """Start drawing a new object. A label matching a preset inherits its color."""
        preset = next((p for p in self.presets if p.label == label), None)
        if preset is None and label is None and self.presets:
            preset = self.presets[0]
        if preset is not None:
            label = preset.label
            color = color or preset.color
        if label is None or color is None:
            raise ValueError("A label without a preset needs an explicit color")
        return self.selection.choose_label(label, color)

    def cancel_label(self) -> None:
        self.selection.cancel()

    def draw_box(self, rect_px: Rect) -> Box:
        """Finish drawing the chosen label on the current frame."""
        return self.selection.complete_draw(self.frame_index, rect_px)

    def move_box(self, identity: str, x: float, y: float) -> Box:
        """Move a box on the current frame so its top-left corner is at pixel (x, y)."""
        frame = self.current_frame
        box = frame.box(identity)
        if box is None:
            raise UnknownIdentityError(f"No box {identity!r} on frame {frame.index}")
        _, _, w, h = denormalize_rect(box.position, frame.width, frame.height)
        x = max(0.0, min(float(x), frame.width - w))
        y = max(0.0, min(float(y), frame.height - h))
        position = normalize_rect((x, y, w, h), frame.width, frame.height)
        return self.store.update_box_geometry(frame.index, identity, position)

    def resize_box(self, identity: str, rect_px: Rect) -> Box:
        """Give a box on the current frame a new pixel rectangle."""
        index = self.frame_index
        width, height = self.store.frame_size(index)
        window = clamp_bbox(canonical_rect(rect_px), width, height)
        position = normalize_rect(window, width, height)
        return self.store.update_box_geometry(index, identity, position)

    # ---------------- selection ----------------
    @property
    def selected(self):
        return self.selection.selected

    def select_single(self, point: Tuple[float, float]) -> Optional[str]:
        return self.selection.complete_single_select(self.frame_index, point)

    def select_multi(self, rect_px: Rect) -> List[str]:
        return self.selection.complete_multi_select(self.frame_index, rect_px)

    def clear_selection(self) -> None:
        self.selection.clear()

    def delete_labels(self, scope: DeleteScope = DeleteScope.ALL) -> int:
        """Delete the selected labels; UP_TO/FROM are relative to the current frame."""
        return delete_labels(self.store, self.selection, self.selection.selected, scope, self.frame_index)

    # ---------------- tracking ----------------
    @property
    def tracking(self) -> bool:
        return self.session.running

    def start_tracking(self, from_index: Optional[int] = None, wait: bool = False) -> bool:
        start = self.frame_index if from_index is None else from_index
        started = self.session.start(self.selection.selected, start)
        if started and wait:
            self.session.wait()
        return started

    def stop_tracking(self) -> bool:
        return self.session.stop()

    def _follow_tracking(self, index: int, boxes: List[Box]) -> None:
        self.frame_index = index
