"""
Rolling timing stats for the detection loop.
"""

import time
from collections import deque
from typing import Deque


def _mean(values: Deque[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class IterationStats:
    """
    Tracks completed iterations over a window of the last `window` of them:
    throughput (iterations/s between completions) and per-iteration latency.
    """

    def __init__(self, window: int = 30) -> None:
        self._last_done: float | None = None
        self._fps: Deque[float] = deque(maxlen=window)
        self._latency_ms: Deque[float] = deque(maxlen=window)
        self.completed = 0

    def record(self, started: float, finished: float | None = None) -> tuple[float, float]:
        """Record one iteration; returns (fps, latency_ms) for it."""
        finished = time.perf_counter() if finished is None else finished
        latency_ms = (finished - started) * 1000.0
        fps = 0.0
        if self._last_done is not None and finished > self._last_done:
            fps = 1.0 / (finished - self._last_done)
            self._fps.append(fps)
        self._last_done = finished
        self._latency_ms.append(latency_ms)
        self.completed += 1
        return fps, latency_ms

    @property
    def rolling_fps(self) -> float:
        return _mean(self._fps)

    @property
    def rolling_latency_ms(self) -> float:
        return _mean(self._latency_ms)

    def reset(self) -> None:
        self._last_done = None
        self._fps.clear()
        self._latency_ms.clear()
        self.completed = 0
