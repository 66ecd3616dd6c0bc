"""
Engine registry: pick an inference backend from the model file suffix.
"""

from __future__ import annotations

from pathlib import Path

from core.errors import ModelLoadFailure
from engines.base import InferenceEngine
from engines.onnx_engine import OnnxEngine
from engines.tflite_engine import TFLiteEngine

# Built-in backends, in lookup order
_BUILTIN_ENGINES: tuple[type[InferenceEngine], ...] = (
    TFLiteEngine,
    OnnxEngine,
)


def supported_suffixes() -> list[str]:
    return [suffix for cls in _BUILTIN_ENGINES for suffix in cls.suffixes]


def engine_class_for(model_path: str | Path) -> type[InferenceEngine]:
    suffix = Path(model_path).suffix.lower()
    for cls in _BUILTIN_ENGINES:
        if suffix in cls.suffixes:
            return cls
    raise ModelLoadFailure(
        f"No inference backend for {Path(model_path).name!r}. Supported: {supported_suffixes()}"
    )


def create_engine(model_path: str | Path) -> InferenceEngine:
    """Instantiate (but do not load) the backend for model_path."""
    return engine_class_for(model_path)(model_path)


__all__ = ["InferenceEngine", "OnnxEngine", "TFLiteEngine", "create_engine", "engine_class_for"]
