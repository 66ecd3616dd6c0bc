"""
Frame -> tensor conversion: RGB, bilinear resize, [0, 1] scaling, batch dimension.
"""

from __future__ import annotations

import cv2
import numpy as np

from core.errors import InvalidFrame
from core.models import Frame
from core.tensors import Tensor, TensorAllocator

DEFAULT_INPUT_SIZE = (224, 224)


class Preprocessor:
    """Turns camera frames (BGR, as OpenCV decodes them) into classifier input."""

    def __init__(
        self,
        allocator: TensorAllocator,
        input_size: tuple[int, int] = DEFAULT_INPUT_SIZE,
    ) -> None:
        height, width = input_size
        if height <= 0 or width <= 0:
            raise ValueError(f"input size must be positive, got {input_size}")
        self._allocator = allocator
        self._input_size = (int(height), int(width))

    @property
    def input_size(self) -> tuple[int, int]:
        """(height, width) of the produced tensor."""
        return self._input_size

    def prepare(self, frame: Frame) -> Tensor:
        """
        Return a (1, H, W, 3) float32 tensor with values in [0, 1].
        The caller owns the tensor and must release it.
        """
        pixels = frame.pixels
        if frame.area == 0 or pixels.size == 0:
            raise InvalidFrame(f"frame {frame.index} has zero area ({pixels.shape})")
        rgb = _to_rgb(pixels, frame.index)
        height, width = self._input_size
        # cv2.resize takes (width, height); always returns a new array
        resized = cv2.resize(rgb, (width, height), interpolation=cv2.INTER_LINEAR)
        batch = np.expand_dims(resized.astype(np.float32) / 255.0, axis=0)
        return self._allocator.allocate(batch)


def _to_rgb(pixels: np.ndarray, index: int) -> np.ndarray:
    if pixels.ndim == 2:
        return cv2.cvtColor(pixels, cv2.COLOR_GRAY2RGB)
    if pixels.ndim == 3 and pixels.shape[2] == 3:
        return cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB)
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_BGRA2RGB)
    raise InvalidFrame(f"frame {index} has unsupported shape {pixels.shape}")
