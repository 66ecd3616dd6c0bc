"""
Tracked tensors. Every tensor handed out by a TensorAllocator must be released
before the iteration that created it returns; `outstanding` tells how many
are still alive.
"""

from __future__ import annotations

import threading
from types import TracebackType

import numpy as np

from core.errors import InvalidTensor


class Tensor:
    """Owned numeric buffer; release() drops the buffer, use as a context manager."""

    __slots__ = ("_data", "_allocator", "_shape")

    def __init__(self, data: np.ndarray, allocator: TensorAllocator) -> None:
        self._data: np.ndarray | None = data
        self._allocator = allocator
        self._shape = tuple(data.shape)

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise InvalidTensor("tensor already released")
        return self._data

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def released(self) -> bool:
        return self._data is None

    def release(self) -> None:
        if self._data is None:
            return
        self._data = None
        self._allocator._free()

    def __enter__(self) -> Tensor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class TensorAllocator:
    """Hands out Tensors and counts the ones not yet released."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outstanding = 0
        self._total = 0

    def allocate(self, data: np.ndarray) -> Tensor:
        with self._lock:
            self._outstanding += 1
            self._total += 1
        return Tensor(data, self)

    def _free(self) -> None:
        with self._lock:
            self._outstanding -= 1

    @property
    def outstanding(self) -> int:
        with self._lock:
            return self._outstanding

    @property
    def total_allocated(self) -> int:
        with self._lock:
            return self._total
