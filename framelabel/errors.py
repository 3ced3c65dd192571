from __future__ import annotations


class FrameLabelError(Exception):
    """Base class for all framelabel errors."""


class FrameIndexError(FrameLabelError, IndexError):
    """Frame index outside the imported timeline."""


class UnknownIdentityError(FrameLabelError, KeyError):
    """No box with this identity exists on the requested frame."""


class InvalidBoxError(FrameLabelError, ValueError):
    """Malformed normalized position or color."""


class SelectionStateError(FrameLabelError):
    """Operation not valid in the current selection mode."""


class TrackingUnavailableError(FrameLabelError):
    """Tracking cannot start: no frames, unknown dimensions or undecodable seed frame."""


class TrackingInProgressError(FrameLabelError):
    """A tracking session is already running."""
