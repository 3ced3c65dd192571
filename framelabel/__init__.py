"""
FrameLabel - Video frame annotation with mean-shift box propagation
"""
__version__ = "1.0.0"

from .annotator import Annotator, LabelPreset, Overlay
from .deletion import DeleteScope, delete_labels
from .errors import (
    FrameLabelError,
    FrameIndexError,
    UnknownIdentityError,
    InvalidBoxError,
    SelectionStateError,
    TrackingUnavailableError,
    TrackingInProgressError,
)
from .selection import LabelTemplate, SelectionEngine, SelectionMode
from .session import TrackingSession, TrackingStatus
from .store import AnnotationStore, Box, Frame, import_frames
from .tracker import (
    MeanShiftTracker,
    TrackResult,
    hue_histogram,
    initialize_histograms,
    load_tracker_config,
)

__all__ = [
    "Annotator",
    "LabelPreset",
    "Overlay",
    "DeleteScope",
    "delete_labels",
    "FrameLabelError",
    "FrameIndexError",
    "UnknownIdentityError",
    "InvalidBoxError",
    "SelectionStateError",
    "TrackingUnavailableError",
    "TrackingInProgressError",
    "LabelTemplate",
    "SelectionEngine",
    "SelectionMode",
    "TrackingSession",
    "TrackingStatus",
    "AnnotationStore",
    "Box",
    "Frame",
    "import_frames",
    "MeanShiftTracker",
    "TrackResult",
    "hue_histogram",
    "initialize_histograms",
    "load_tracker_config",
]
