"""
Pytest configuration and shared fakes.
"""

import os
import sys

# Qt must pick the headless platform before any QApplication exists
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np
import pytest

from core.errors import DeviceUnavailable
from core.models import Frame
from core.preprocess import Preprocessor
from core.tensors import TensorAllocator
from engines.base import InferenceEngine


@pytest.fixture(autouse=True)
def _qt_app(qapp):
    """Every test gets a QApplication so QObjects and signals behave normally."""
    return qapp


def make_frame(index=0, height=480, width=640, color=(0, 0, 0)):
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:] = color
    pixels.flags.writeable = False
    return Frame(pixels=pixels, index=index, timestamp_s=float(index))


class FakeFrameSource:
    """
    Scripted camera. `script` items are returned by current_frame() in order:
    None (no frame yet), a Frame, or an exception instance to raise. When the
    script runs out, fresh frames are produced forever.
    """

    def __init__(self, script=None, start_error=None):
        self.script = list(script or [])
        self.start_error = start_error
        self.start_calls = 0
        self.stop_calls = 0
        self.frame_calls = 0
        self.running = False
        self._next_index = 0

    def start(self):
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.running = True

    def stop(self):
        self.stop_calls += 1
        self.running = False

    def current_frame(self):
        self.frame_calls += 1
        if not self.running:
            raise DeviceUnavailable("source not started")
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        frame = make_frame(index=self._next_index, height=48, width=64)
        self._next_index += 1
        return frame


class FakeEngine(InferenceEngine):
    """Deterministic classifier that records how many classify() calls overlap."""

    engine_id = "fake"
    display_name = "Fake"

    def __init__(self, scores=(0.82, 0.18), input_size=(224, 224), errors=None, on_run=None):
        super().__init__()
        self.scores = np.asarray(scores, dtype=np.float32)
        self._input_size = input_size
        # call number (0-based) -> exception to raise
        self.errors = dict(errors or {})
        self.on_run = on_run
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.loaded = False
        self.closed = False

    def load(self):
        self.loaded = True

    @property
    def input_size(self):
        return self._input_size

    @property
    def output_width(self):
        return int(self.scores.shape[0])

    def _run(self, batch):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            call = self.calls
            self.calls += 1
            if self.on_run is not None:
                self.on_run(call)
            if call in self.errors:
                raise self.errors[call]
            return self.scores[np.newaxis, :]
        finally:
            self.active -= 1

    def close(self):
        self.closed = True


class ManualScheduler:
    """Single-slot scheduler driven by the test instead of a timer."""

    def __init__(self, tick_ms=16):
        self._tick_ms = tick_ms
        self._callback = None
        self.delays = []
        self.cancel_calls = 0

    @property
    def tick_ms(self):
        return self._tick_ms

    @property
    def pending(self):
        return self._callback is not None

    def schedule(self, callback, delay_ms=None):
        self._callback = callback
        self.delays.append(delay_ms)

    def cancel(self):
        self.cancel_calls += 1
        self._callback = None

    def run_next(self):
        """Fire the pending callback; False when nothing was scheduled."""
        callback, self._callback = self._callback, None
        if callback is None:
            return False
        callback()
        return True

    def run(self, count):
        ran = 0
        while ran < count and self.run_next():
            ran += 1
        return ran


@pytest.fixture
def allocator():
    return TensorAllocator()


@pytest.fixture
def preprocessor(allocator):
    return Preprocessor(allocator, (224, 224))


@pytest.fixture
def scheduler():
    return ManualScheduler()
