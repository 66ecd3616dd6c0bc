"""
ONNX Runtime backend for classifiers exported to ONNX (e.g. a Keras export via tf2onnx).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np

from engines.base import InferenceEngine

logger = logging.getLogger(__name__)


class OnnxEngine(InferenceEngine):
    engine_id = "onnx"
    display_name = "ONNX Runtime"
    suffixes = (".onnx",)

    def __init__(self, model_path: str | Path, providers: list[str] | None = None) -> None:
        super().__init__()
        self._model_path = str(model_path)
        self._providers = providers or ["CPUExecutionProvider"]
        self._session: Any = None
        self._input_name = ""
        self._channels_first = False
        self._input_hw: tuple[int, int] = (0, 0)
        self._output_width = 0

    def load(self) -> None:
        try:
            import onnxruntime as ort
        except ImportError as exc:
            raise RuntimeError("onnxruntime is required for ONNX models") from exc

        session = ort.InferenceSession(self._model_path, providers=self._providers)
        model_input = session.get_inputs()[0]
        shape = list(model_input.shape)
        if len(shape) != 4:
            raise RuntimeError(f"expected a 4-D image input, model declares {shape}")
        # NCHW when the channel axis sits right after the batch axis
        self._channels_first = shape[1] == 3 and shape[3] != 3
        dims = shape[2:4] if self._channels_first else shape[1:3]
        self._input_hw = tuple(_static_dim(d, 224) for d in dims)  # type: ignore[assignment]
        out_shape = session.get_outputs()[0].shape
        self._output_width = _static_dim(out_shape[-1], 0)
        if self._output_width <= 0:
            raise RuntimeError(f"model output width is not static: {out_shape}")
        self._input_name = model_input.name
        self._session = session
        logger.info(
            "Loaded ONNX model %s: input %s (%s), %d outputs",
            self._model_path,
            shape,
            "NCHW" if self._channels_first else "NHWC",
            self._output_width,
        )

    @property
    def input_size(self) -> tuple[int, int]:
        return self._input_hw

    @property
    def output_width(self) -> int:
        return self._output_width

    def _run(self, batch: np.ndarray) -> np.ndarray:
        if self._session is None:
            raise RuntimeError("ONNX engine is not loaded")
        feed = np.transpose(batch, (0, 3, 1, 2)) if self._channels_first else batch
        outputs = self._session.run(None, {self._input_name: np.ascontiguousarray(feed)})
        return outputs[0]

    def close(self) -> None:
        self._session = None


def _static_dim(value: Any, default: int) -> int:
    """Symbolic/unknown ONNX dims come back as strings or None."""
    return int(value) if isinstance(value, int) and value > 0 else default
