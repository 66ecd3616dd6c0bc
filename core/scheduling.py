"""
Display-synchronized scheduling: one pending callback at a time, fired from the
Qt event loop once per screen refresh. No threads involved.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from PySide6.QtCore import QObject, QTimer
from PySide6.QtGui import QGuiApplication

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_HZ = 60.0


class FrameScheduler(Protocol):
    """Single-slot scheduler used by the detection loop."""

    @property
    def tick_ms(self) -> int:
        ...

    @property
    def pending(self) -> bool:
        ...

    def schedule(self, callback: Callable[[], None], delay_ms: int | None = None) -> None:
        """Replace the pending callback; run it after delay_ms (default: next tick)."""
        ...

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        ...


def display_refresh_interval_ms() -> int:
    """Refresh period of the primary screen, 60 Hz when no screen is known."""
    rate = DEFAULT_REFRESH_HZ
    if isinstance(QGuiApplication.instance(), QGuiApplication):
        screen = QGuiApplication.primaryScreen()
        if screen is not None and screen.refreshRate() > 0:
            rate = screen.refreshRate()
    return max(1, round(1000.0 / rate))


class QtFrameScheduler(QObject):
    """Single-shot QTimer holding exactly one callback."""

    def __init__(self, tick_ms: int | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._tick_ms = tick_ms if tick_ms is not None else display_refresh_interval_ms()
        self._callback: Callable[[], None] | None = None
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._fire)
        logger.debug("Frame scheduler tick: %d ms", self._tick_ms)

    @property
    def tick_ms(self) -> int:
        return self._tick_ms

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def schedule(self, callback: Callable[[], None], delay_ms: int | None = None) -> None:
        self._timer.stop()
        self._callback = callback
        self._timer.start(self._tick_ms if delay_ms is None else max(0, delay_ms))

    def cancel(self) -> None:
        self._timer.stop()
        self._callback = None

    def _fire(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()


class FrameBackoff:
    """Delay before polling again for a first frame: tick * 2**n, capped."""

    def __init__(self, tick_ms: int, max_ms: int = 250) -> None:
        self._tick_ms = max(1, tick_ms)
        self._max_ms = max(self._tick_ms, max_ms)
        self._attempts = 0

    def next_delay_ms(self) -> int:
        delay = min(self._tick_ms * (2 ** self._attempts), self._max_ms)
        if delay < self._max_ms:
            self._attempts += 1
        return delay

    def reset(self) -> None:
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts
