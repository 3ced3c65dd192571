from __future__ import annotations
import logging
from enum import Enum
from typing import Iterable, Optional

from .errors import FrameIndexError
from .selection import SelectionEngine
from .store import AnnotationStore

logger = logging.getLogger(__name__)


class DeleteScope(Enum):
    ALL = "all"
    UP_TO = "up_to"      # frames 0..k
    FROM = "from"        # frames k..N-1


def scope_range(scope: DeleteScope, frame_count: int, frame_index: Optional[int] = None) -> range:
    if scope is DeleteScope.ALL:
        return range(frame_count)
    if frame_index is None:
        raise ValueError(f"{scope.name} deletion needs a frame index")
    if not 0 <= frame_index < frame_count:
        raise FrameIndexError(f"Frame index {frame_index} out of range 0..{frame_count - 1}")
    if scope is DeleteScope.UP_TO:
        return range(0, frame_index + 1)
    return range(frame_index, frame_count)


def delete_labels(
    store: AnnotationStore,
    selection: SelectionEngine,
    identities: Iterable[str],
    scope: DeleteScope = DeleteScope.ALL,
    frame_index: Optional[int] = None,
) -> int:
    """Remove the boxes of `identities` from the frames in scope, then clear the selection."""
    targets = set(identities)
    frames = scope_range(scope, len(store), frame_index)
    removed = store.delete_boxes(targets, frames)
    selection.clear()
    logger.info("Deleted %d box(es) for %d label(s), scope=%s", removed, len(targets), scope.value)
    return removed
