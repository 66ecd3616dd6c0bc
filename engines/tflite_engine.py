"""
TensorFlow Lite backend (Teachable Machine "TensorFlow Lite" export, float or quantized).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from engines.base import InferenceEngine

logger = logging.getLogger(__name__)


class TFLiteEngine(InferenceEngine):
    engine_id = "tflite"
    display_name = "TensorFlow Lite"
    suffixes = (".tflite",)

    def __init__(self, model_path: str | Path, num_threads: int | None = None) -> None:
        super().__init__()
        self._model_path = str(model_path)
        self._num_threads = num_threads
        self._interpreter: Any = None
        self._input: dict[str, Any] = {}
        self._output: dict[str, Any] = {}

    def load(self) -> None:
        from ai_edge_litert.interpreter import Interpreter

        interpreter = Interpreter(model_path=self._model_path, num_threads=self._num_threads)
        interpreter.allocate_tensors()
        self._input = interpreter.get_input_details()[0]
        self._output = interpreter.get_output_details()[0]
        self._interpreter = interpreter
        logger.info(
            "Loaded TFLite model %s: input %s %s, output %s %s",
            self._model_path,
            list(self._input["shape"]),
            np.dtype(self._input["dtype"]).name,
            list(self._output["shape"]),
            np.dtype(self._output["dtype"]).name,
        )

    @property
    def input_size(self) -> tuple[int, int]:
        shape = self._details(self._input)["shape"]
        return int(shape[1]), int(shape[2])

    @property
    def output_width(self) -> int:
        return int(self._details(self._output)["shape"][-1])

    def _run(self, batch: np.ndarray) -> np.ndarray:
        interpreter = self._interpreter
        if interpreter is None:
            raise RuntimeError("TFLite engine is not loaded")
        interpreter.set_tensor(self._input["index"], _quantize(batch, self._input))
        interpreter.invoke()
        # get_tensor returns a copy; tensor() would alias interpreter memory
        raw = interpreter.get_tensor(self._output["index"])
        return _dequantize(raw, self._output)

    def close(self) -> None:
        self._interpreter = None

    def _details(self, details: dict[str, Any]) -> dict[str, Any]:
        if not details:
            raise RuntimeError("TFLite engine is not loaded")
        return details


def _quantize(batch: np.ndarray, details: dict[str, Any]) -> np.ndarray:
    dtype = np.dtype(details["dtype"])
    if dtype == np.float32:
        return batch
    if dtype == np.float16:
        return batch.astype(np.float16)
    scale, zero_point = details.get("quantization", (0.0, 0))
    if not scale:
        # Unquantized integer input: raw 0-255 pixels
        return np.clip(batch * 255.0, 0, 255).astype(dtype)
    info = np.iinfo(dtype)
    values = np.round(batch / scale + zero_point)
    return np.clip(values, info.min, info.max).astype(dtype)


def _dequantize(raw: np.ndarray, details: dict[str, Any]) -> np.ndarray:
    dtype = np.dtype(details["dtype"])
    if dtype.kind == "f":
        return raw.astype(np.float32)
    scale, zero_point = details.get("quantization", (0.0, 0))
    if not scale:
        return raw.astype(np.float32) / float(np.iinfo(dtype).max)
    return (raw.astype(np.float32) - zero_point) * scale
