"""
Detection loop: capture -> preprocess -> classify -> rank -> publish, one
iteration per display refresh on the Qt event loop.

Iterations are single-flight. The next one is only scheduled once the current
one has released its tensor, so at most one tensor and one classify() call
exist at any time. stop() cancels the pending iteration and releases the
camera without waiting; an iteration already running finishes its own cleanup
and then drops its result.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

from PySide6.QtCore import QObject, Signal

from core.errors import DeviceUnavailable, LiveClassifierError, PermissionDenied
from core.models import Frame, LoopState, RankedPredictions
from core.preprocess import Preprocessor
from core.ranking import rank
from core.scheduling import FrameBackoff, FrameScheduler, QtFrameScheduler
from core.utils import IterationStats
from engines.base import InferenceEngine

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def current_frame(self) -> Frame | None: ...


class DetectionLoop(QObject):
    """Owns the loop state machine and the iteration schedule."""

    # Ranked predictions for one frame
    predictions_ready = Signal(object)
    # Frame pixels (BGR, read-only view); valid only while the slot runs
    frame_presented = Signal(object)
    # Transient per-iteration failure (bad frame, inference error)
    iteration_failed = Signal(str)
    # Start-up failure or device lost; the loop is Idle afterwards
    error_occurred = Signal(str)
    state_changed = Signal(object)
    # (fps, latency_ms, rolling_latency_ms)
    stats_updated = Signal(float, float, float)

    def __init__(
        self,
        source: FrameSource,
        preprocessor: Preprocessor,
        engine: InferenceEngine,
        labels: Sequence[str],
        scheduler: FrameScheduler | None = None,
        max_backoff_ms: int = 250,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._source = source
        self._preprocessor = preprocessor
        self._engine = engine
        self._labels = tuple(labels)
        self._scheduler = scheduler if scheduler is not None else QtFrameScheduler(parent=self)
        self._backoff = FrameBackoff(self._scheduler.tick_ms, max_backoff_ms)
        self._state = LoopState.IDLE
        # Bumped on every start/stop; iterations from an older run are stale
        self._generation = 0
        self._in_flight = False
        self._stats = IterationStats()

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def stats(self) -> IterationStats:
        return self._stats

    def start(self) -> bool:
        """Acquire the camera and begin iterating. Returns False if the camera failed."""
        if self._state is not LoopState.IDLE:
            return self._state is LoopState.RUNNING
        self._set_state(LoopState.STARTING)
        try:
            self._source.start()
        except (DeviceUnavailable, PermissionDenied) as e:
            logger.error("Camera start failed: %s", e)
            self._start_failed(str(e))
            return False
        except Exception as e:
            logger.exception("Unexpected error while starting the camera")
            self._start_failed(f"{type(e).__name__}: {e}")
            return False
        self._generation += 1
        self._backoff.reset()
        self._stats.reset()
        self._set_state(LoopState.RUNNING)
        self._schedule(self._generation)
        logger.info("Detection started")
        return True

    def _start_failed(self, message: str) -> None:
        self._release_source()
        self._set_state(LoopState.IDLE)
        self.error_occurred.emit(message)

    def stop(self) -> None:
        """Cancel the pending iteration and release the camera. Idempotent."""
        was_running = self._state is not LoopState.IDLE
        self._generation += 1
        self._scheduler.cancel()
        if was_running:
            self._set_state(LoopState.STOPPING)
        try:
            self._release_source()
        finally:
            if was_running:
                self._set_state(LoopState.IDLE)
                logger.info("Detection stopped after %d iteration(s)", self._stats.completed)

    def _schedule(self, generation: int, delay_ms: int | None = None) -> None:
        self._scheduler.schedule(lambda: self._iterate(generation), delay_ms)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._state is LoopState.RUNNING

    def _iterate(self, generation: int) -> None:
        if not self._is_current(generation) or self._in_flight:
            return
        self._in_flight = True
        try:
            delay_ms = self._run_once(generation)
        finally:
            self._in_flight = False
        if self._is_current(generation) and not self._scheduler.pending:
            self._schedule(generation, delay_ms)

    def _run_once(self, generation: int) -> int | None:
        """One iteration; returns the delay before the next one (None = next tick)."""
        try:
            frame = self._source.current_frame()
        except DeviceUnavailable as e:
            self._device_lost(generation, e)
            return None
        if frame is None:
            delay_ms = self._backoff.next_delay_ms()
            logger.debug("No frame yet, retrying in %d ms", delay_ms)
            return delay_ms
        self._backoff.reset()
        started = time.perf_counter()
        try:
            with self._preprocessor.prepare(frame) as tensor:
                probabilities = self._engine.classify(tensor)
            predictions: RankedPredictions = rank(probabilities, self._labels)
        except LiveClassifierError as e:
            logger.warning("Frame %d skipped: %s: %s", frame.index, type(e).__name__, e)
            self.iteration_failed.emit(f"{type(e).__name__}: {e}")
            return None
        except Exception as e:
            logger.exception("Frame %d skipped after unexpected error", frame.index)
            self.iteration_failed.emit(f"{type(e).__name__}: {e}")
            return None
        if generation != self._generation:
            # stop() ran while this frame was being classified
            return None
        fps, latency_ms = self._stats.record(started)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Frame %d: %s",
                frame.index,
                ", ".join(f"{p.label}={p.probability:.3f}" for p in predictions),
            )
        self.frame_presented.emit(frame.pixels)
        self.predictions_ready.emit(predictions)
        self.stats_updated.emit(fps, latency_ms, self._stats.rolling_latency_ms)
        return None

    def _device_lost(self, generation: int, error: DeviceUnavailable) -> None:
        if generation != self._generation:
            return
        logger.error("Camera lost: %s", error)
        self.stop()
        self.error_occurred.emit(str(error))

    def _release_source(self) -> None:
        try:
            self._source.stop()
        except Exception:
            logger.exception("Error while releasing camera")

    def _set_state(self, state: LoopState) -> None:
        if state is self._state:
            return
        self._state = state
        self.state_changed.emit(state)
