"""
Base interface every inference backend implements.

The detection loop only ever calls classify(); backends provide load(),
_run() and the input/output geometry.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import numpy as np

from core.errors import InferenceFailure
from core.tensors import Tensor


class InferenceEngine(ABC):
    """Opaque image classifier. Subclass and implement the abstract members."""

    engine_id: str = ""
    display_name: str = ""
    # File suffixes this backend can load, e.g. (".tflite",)
    suffixes: tuple[str, ...] = ()

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @abstractmethod
    def load(self) -> None:
        """Load the model. Called once, before the first classify()."""
        ...

    @property
    @abstractmethod
    def input_size(self) -> tuple[int, int]:
        """(height, width) the model expects."""
        ...

    @property
    @abstractmethod
    def output_width(self) -> int:
        """Number of scores produced per image."""
        ...

    @abstractmethod
    def _run(self, batch: np.ndarray) -> np.ndarray:
        """Run the backend on a (1, H, W, 3) float32 batch; return raw scores."""
        ...

    def close(self) -> None:
        """Release backend resources."""

    def classify(self, tensor: Tensor) -> np.ndarray:
        """
        Probability vector for one image, length output_width.
        Raises InferenceFailure for a malformed tensor or a backend error.
        The tensor stays owned by the caller.
        """
        batch = tensor.data
        height, width = self.input_size
        expected = (1, height, width, 3)
        if tuple(batch.shape) != expected:
            raise InferenceFailure(f"expected tensor shape {expected}, got {tuple(batch.shape)}")
        # Backends are not assumed to be re-entrant
        with self._lock:
            try:
                raw = self._run(batch)
            except InferenceFailure:
                raise
            except Exception as e:
                raise InferenceFailure(f"{self.display_name or type(self).__name__}: {e}") from e
        scores = np.asarray(raw, dtype=np.float32).reshape(-1)
        if scores.shape[0] != self.output_width:
            raise InferenceFailure(
                f"expected {self.output_width} scores, backend returned {scores.shape[0]}"
            )
        if not np.all(np.isfinite(scores)):
            raise InferenceFailure(f"backend returned non-finite scores: {scores.tolist()}")
        # Detach from backend-owned output memory
        return scores.copy()
