"""
Shared data models: frames, predictions, loop state and the results payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import numpy as np


class LoopState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class Frame:
    """
    Read-only view of the capture buffer for one loop iteration.
    The pixels are overwritten by the next read; do not keep a Frame around.
    """

    pixels: np.ndarray
    index: int
    timestamp_s: float

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 1 else 0

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Prediction:
    label: str
    probability: float


# Sorted by probability descending, ties in label-index order
RankedPredictions = tuple[Prediction, ...]

