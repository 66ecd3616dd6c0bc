"""
Camera frame source. A grabber on its own QThread keeps decoding frames so
current_frame() never waits on the device.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import time

import cv2
import numpy as np
from PySide6.QtCore import QObject, QThread

from core.errors import DeviceUnavailable, PermissionDenied
from core.models import Frame

logger = logging.getLogger(__name__)

# Pause after a failed read so a dead device does not spin the grabber thread
_RETRY_DELAY_S = 0.01


class FrameGrabber(QObject):
    """
    Worker that reads the device in a loop into three rotating buffers:
    `back` is being decoded into, `ready` holds the newest complete frame and
    `front` is lent to the consumer. The grabber never writes into `front`.
    """

    def __init__(self, cap: cv2.VideoCapture, max_missed_frames: int) -> None:
        super().__init__()
        self._cap = cap
        self._max_missed_frames = max_missed_frames
        self._lock = threading.Lock()
        self._running = False
        self._back: np.ndarray | None = None
        self._ready: np.ndarray | None = None
        self._front: np.ndarray | None = None
        self._ready_meta = (-1, 0.0)
        self._fresh = False
        self._error: DeviceUnavailable | None = None

    def request_start(self) -> None:
        self._running = True

    def request_stop(self) -> None:
        self._running = False

    def run(self) -> None:
        """Runs in the grabber thread until request_stop() or device loss."""
        index = -1
        missed = 0
        while self._running:
            if not self._cap.isOpened():
                self._fail(DeviceUnavailable("Camera is no longer available"))
                return
            ok, pixels = self._cap.read(self._back)
            if not ok or pixels is None:
                if index >= 0:
                    missed += 1
                    if missed >= self._max_missed_frames:
                        self._fail(DeviceUnavailable("Camera stopped producing frames"))
                        return
                time.sleep(_RETRY_DELAY_S)
                continue
            missed = 0
            index += 1
            with self._lock:
                self._back, self._ready = self._ready, pixels
                self._ready_meta = (index, time.perf_counter())
                self._fresh = True

    def latest(self) -> Frame | None:
        """Newest frame not handed out yet, or None. Raises DeviceUnavailable once lost."""
        with self._lock:
            if self._error is not None:
                raise self._error
            if not self._fresh or self._ready is None:
                return None
            self._front, self._ready = self._ready, self._front
            self._fresh = False
            pixels = self._front
            index, timestamp_s = self._ready_meta
        view = pixels.view()
        view.flags.writeable = False
        return Frame(pixels=view, index=index, timestamp_s=timestamp_s)

    def _fail(self, error: DeviceUnavailable) -> None:
        logger.error("Frame grabber stopped: %s", error)
        with self._lock:
            self._error = error


class CameraFrameSource:
    """Webcam by index. start()/stop() bracket exclusive use of the device."""

    def __init__(
        self,
        index: int = 0,
        width: int = 640,
        height: int = 480,
        max_missed_frames: int = 90,
        stop_timeout_ms: int = 5000,
    ) -> None:
        self._index = index
        self._width = width
        self._height = height
        self._max_missed_frames = max_missed_frames
        self._stop_timeout_ms = stop_timeout_ms
        self._cap: cv2.VideoCapture | None = None
        self._grabber: FrameGrabber | None = None
        self._thread: QThread | None = None

    @property
    def camera_index(self) -> int:
        return self._index

    @camera_index.setter
    def camera_index(self, index: int) -> None:
        if self.is_opened():
            raise RuntimeError("cannot change camera while it is running")
        self._index = index

    def start(self) -> None:
        """Open the device and start grabbing. Raises PermissionDenied or DeviceUnavailable."""
        if self.is_opened():
            return
        self._check_permission()
        # On Windows, use DirectShow so index order matches the enumerated camera list
        if sys.platform == "win32":
            cap = cv2.VideoCapture(self._index, cv2.CAP_DSHOW)
        else:
            cap = cv2.VideoCapture(self._index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(f"Could not open camera {self._index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        # Keep only the newest frame queued
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap
        self._grabber = FrameGrabber(cap, self._max_missed_frames)
        self._grabber.request_start()
        self._thread = QThread()
        self._grabber.moveToThread(self._thread)
        self._thread.started.connect(self._grabber.run)
        self._thread.start()
        logger.info("Camera %d opened (%dx%d requested)", self._index, self._width, self._height)

    def stop(self) -> None:
        """Stop grabbing and release the device. Safe to call at any time, any number of times."""
        grabber, self._grabber = self._grabber, None
        thread, self._thread = self._thread, None
        cap, self._cap = self._cap, None
        if grabber is not None:
            grabber.request_stop()
        if thread is not None:
            thread.quit()
            # A read in progress finishes within one frame period
            if not thread.wait(self._stop_timeout_ms):
                logger.warning("Frame grabber did not stop within %d ms", self._stop_timeout_ms)
        if cap is not None:
            cap.release()
            logger.info("Camera %d released", self._index)

    def is_opened(self) -> bool:
        # The grabber thread owns the capture while running; do not query it here
        return self._cap is not None

    def current_frame(self) -> Frame | None:
        """
        Lend the newest decoded frame as a read-only view, without blocking.
        None until the device has produced a frame, and when no new frame
        arrived since the previous call.
        """
        if self._grabber is None:
            return None
        return self._grabber.latest()

    def get_size(self) -> tuple[int, int]:
        """(width, height) the device actually delivers."""
        if self._cap is None:
            return 0, 0
        w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return w, h

    def _check_permission(self) -> None:
        if not sys.platform.startswith("linux"):
            return
        node = f"/dev/video{self._index}"
        if os.path.exists(node) and not os.access(node, os.R_OK | os.W_OK):
            raise PermissionDenied(f"No permission to access {node}")
