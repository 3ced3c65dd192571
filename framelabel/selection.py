"""
Selection state machine.

Modes mirror the annotation UI: idle, drawing a new label, rubber-band
multi-select, and click-to-select. Pointer plumbing stays outside; callers
hand in the finished pixel-space rectangle or point.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

from .errors import SelectionStateError
from .geometry import (
    Color,
    Rect,
    canonical_rect,
    clamp_bbox,
    denormalize_rect,
    normalize_rect,
    rect_contains_point,
    rect_contains_rect,
)
from .store import AnnotationStore, Box

logger = logging.getLogger(__name__)


class SelectionMode(Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    MULTI_SELECTING = "multi_selecting"
    SINGLE_SELECTING = "single_selecting"


@dataclass(frozen=True)
class LabelTemplate:
    """A chosen label waiting for its first rectangle."""
    color: Color
    label: str
    identity: str = field(default_factory=lambda: str(uuid.uuid4()))


class SelectionEngine:
    """
    Holds the selection set (identities, not geometry) and the pending label.

    Single-select tie-break: when several boxes contain the clicked point, the
    most recently inserted one on that frame wins (it is drawn on top).
    """

    def __init__(self, store: AnnotationStore):
        self.store = store
        self.mode = SelectionMode.IDLE
        self.template: Optional[LabelTemplate] = None
        self._selected: Set[str] = set()

    @property
    def selected(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    def is_selected(self, identity: str) -> bool:
        return identity in self._selected

    # ---------------- mode transitions ----------------
    def choose_label(self, label: str, color: Color) -> LabelTemplate:
        self.template = LabelTemplate(color=tuple(int(c) for c in color), label=label)  # type: ignore[arg-type]
        self.mode = SelectionMode.DRAWING
        return self.template

    def begin_multi_select(self) -> None:
        self.template = None
        self.mode = SelectionMode.MULTI_SELECTING

    def begin_single_select(self) -> None:
        self.template = None
        self.mode = SelectionMode.SINGLE_SELECTING

    def cancel(self) -> None:
        """Drop any pending label and return to idle; the selection is kept."""
        self.template = None
        self.mode = SelectionMode.IDLE

    # ---------------- completions ----------------
    def complete_draw(self, frame_index: int, rect_px: Rect) -> Box:
        """Materialize the pending label as the first box of a new logical object."""
        if self.template is None:
            raise SelectionStateError("No label chosen; call choose_label() before drawing")
        width, height = self.store.frame_size(frame_index)
        window = clamp_bbox(canonical_rect(rect_px), width, height)
        box = Box(
            position=normalize_rect(window, width, height),
            color=self.template.color,
            label=self.template.label,
            identity=self.template.identity,
        )
        box = self.store.add_box(frame_index, box)
        logger.debug("Drew %s (%s) on frame %d at %s", box.label, box.identity, frame_index, window)
        self.cancel()
        return box

    def complete_multi_select(self, frame_index: int, rect_px: Rect) -> List[str]:
        """Select every box fully inside the rubber band; returns newly added identities."""
        frame = self.store.get_frame(frame_index)
        band = canonical_rect(rect_px)
        added = []
        for box in frame.boxes:
            inner = denormalize_rect(box.position, frame.width, frame.height)
            if rect_contains_rect(band, inner) and box.identity not in self._selected:
                self._selected.add(box.identity)
                added.append(box.identity)
        self.mode = SelectionMode.IDLE
        return added

    def complete_single_select(self, frame_index: int, point: Tuple[float, float]) -> Optional[str]:
        """Select the topmost box under `point`; returns its identity or None."""
        frame = self.store.get_frame(frame_index)
        hit = None
        for box in reversed(frame.boxes):
            if rect_contains_point(denormalize_rect(box.position, frame.width, frame.height), point):
                hit = box.identity
                break
        if hit is not None:
            self._selected.add(hit)
        self.mode = SelectionMode.IDLE
        return hit

    def select(self, identities: Iterable[str]) -> None:
        self._selected.update(identities)

    def clear(self) -> None:
        self._selected.clear()

