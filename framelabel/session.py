"""
Tracking session: propagates the selected boxes from a seed frame to the end
of the timeline.

One background thread walks the frames in order. For each frame the
per-object mean-shift updates run on a session-scoped thread pool, and the
whole batch is committed to the store in one step before the cursor moves on.
`stop()` is cooperative: it is observed between frames, and a batch that
finishes after it was requested is dropped rather than written.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import cv2
import numpy as np

from .errors import TrackingInProgressError, TrackingUnavailableError
from .geometry import to_hsv
from .store import AnnotationStore, Box
from .tracker import (
    HistogramParams,
    MeanShiftParams,
    MeanShiftTracker,
    TrackResult,
    load_tracker_config,
    seed_trackers,
)

logger = logging.getLogger(__name__)

FrameCallback = Callable[[int, List[Box]], None]
FinishCallback = Callable[[bool], None]


class TrackingStatus(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class TrackingSession:
    def __init__(
        self,
        store: AnnotationStore,
        config: Optional[Mapping[str, Any]] = None,
        on_frame: Optional[FrameCallback] = None,
        on_finish: Optional[FinishCallback] = None,
    ):
        self.store = store
        cfg = config if config is not None else load_tracker_config()
        self.hist_params = HistogramParams.from_config(cfg)
        self.params = MeanShiftParams.from_config(cfg)
        session_cfg = cfg.get("session", {})
        self.workers = max(1, int(session_cfg.get("workers", 4)))
        self.frame_interval = max(0.0, float(session_cfg.get("frame_interval", 0.0)))
        self.on_frame = on_frame
        self.on_finish = on_finish

        self.status = TrackingStatus.STOPPED
        self.cursor: Optional[int] = None
        self.last_committed: Optional[int] = None
        self.error: Optional[BaseException] = None
        self._trackers: Dict[str, MeanShiftTracker] = {}
        self._stop = threading.Event()
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self.status is TrackingStatus.RUNNING

    @property
    def tracked_identities(self) -> List[str]:
        return list(self._trackers)

    # ---------------- control ----------------
    def start(self, selection: Iterable[str], from_index: int, background: bool = True) -> bool:
        """
        Seed one tracker per selected box on `from_index` and track to the end.

        Returns False (and does nothing) when no selected identity has a box on
        the seed frame or the seed is the last frame. Raises
        TrackingUnavailableError when the seed frame cannot be used and
        TrackingInProgressError when a session is already running.

        May be called from `on_finish`: the finishing session has already
        released its state, so the new one starts on top of it.
        """
        previous = self._thread
        if previous is not None and previous.is_alive():
            if self.running:
                raise TrackingInProgressError("A tracking session is already running; stop it first")
            if previous is not threading.current_thread():
                previous.join()

        with self._lock:
            if self.running:
                raise TrackingInProgressError("A tracking session is already running; stop it first")
            if len(self.store) == 0:
                raise TrackingUnavailableError("No frames imported")
            frame = self.store.get_frame(from_index)
            selected = set(selection)
            boxes = [b for b in frame.boxes if b.identity in selected]
            if not boxes:
                logger.info("Nothing to track: no selected box on frame %d", from_index)
                return False
            if from_index + 1 >= len(self.store):
                logger.info("Nothing to track: frame %d is the last frame", from_index)
                return False
            if frame.width <= 0 or frame.height <= 0:
                raise TrackingUnavailableError(f"Frame {from_index} has unknown dimensions")
            image = frame.load_image()
            if image is None:
                raise TrackingUnavailableError(f"Seed frame {from_index} could not be decoded")

            self._trackers = seed_trackers(
                image, boxes, frame.width, frame.height, self.hist_params, self.params
            )
            self._stop.clear()
            self.error = None
            self.cursor = from_index + 1
            self.last_committed = None
            self.status = TrackingStatus.RUNNING

        logger.info(
            "Tracking %d object(s) from frame %d to %d",
            len(self._trackers), from_index, len(self.store) - 1,
        )
        if background:
            self._thread = threading.Thread(target=self._run, name="framelabel-tracking", daemon=True)
            self._thread.start()
        else:
            self._thread = None
            self._run()
            if self.error is not None:
                raise self.error
        return True

    def stop(self, wait: bool = True) -> bool:
        """Request cancellation; frames already committed keep their boxes."""
        with self._lock:
            was_running = self.running
            self._stop.set()
            self.status = TrackingStatus.STOPPED
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
        if was_running:
            logger.info("Tracking stopped; last committed frame: %s", self.last_committed)
        return was_running

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the session thread exits; True if it has."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return True

    # ---------------- loop ----------------
    def _run(self) -> None:
        completed = False
        executor = ThreadPoolExecutor(
            max_workers=min(self.workers, max(1, len(self._trackers))),
            thread_name_prefix="framelabel-meanshift",
        )
        try:
            while not self._stop.is_set():
                index = self.cursor
                if index is None or index >= len(self.store):
                    completed = True
                    break
                boxes = self._track_frame(executor, index)
                with self._lock:
                    if self._stop.is_set():
                        logger.debug("Discarding uncommitted batch for frame %d", index)
                        break
                    self.store.commit_frame(index, boxes)
                    self.last_committed = index
                    self.cursor = index + 1
                logger.debug("Committed %d box(es) on frame %d", len(boxes), index)
                if self.on_frame is not None:
                    self.on_frame(index, boxes)
                if self.frame_interval > 0:
                    self._stop.wait(self.frame_interval)
        except Exception as exc:
            logger.exception("Tracking session failed at frame %s", self.cursor)
            self.error = exc
        finally:
            executor.shutdown(wait=True)
            self._release(completed)

    def _track_frame(self, executor: ThreadPoolExecutor, index: int) -> List[Box]:
        frame = self.store.get_frame(index)
        trackers = list(self._trackers.values())
        for tracker in trackers:
            tracker.rescale(frame.width, frame.height)
        image = frame.load_image()
        if image is None:
            logger.warning("Frame %d could not be decoded; keeping previous windows", index)
            results = [t.hold() for t in trackers]
        else:
            hsv = to_hsv(image)
            results = list(executor.map(lambda t: self._update_one(t, hsv), trackers))
        return [self._trackers[r.identity].to_box(frame.width, frame.height) for r in results]

    @staticmethod
    def _update_one(tracker: MeanShiftTracker, hsv: np.ndarray) -> TrackResult:
        try:
            return tracker.update(hsv)
        except cv2.error as exc:
            logger.warning("Mean-shift failed for %s: %s; keeping previous window", tracker.identity, exc)
            return tracker.hold()

    def _release(self, completed: bool) -> None:
        with self._lock:
            self._trackers = {}
            self.status = TrackingStatus.STOPPED
        if completed:
            logger.info("Tracking finished at frame %s", self.last_committed)
        if self.on_finish is not None:
            self.on_finish(completed)
