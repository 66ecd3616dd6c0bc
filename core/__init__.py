# Core: capture, preprocessing, ranking, detection loop, model loading

from core.capture import CameraFrameSource
from core.models import Frame, LoopState, Prediction, RankedPredictions
from core.preprocess import Preprocessor
from core.ranking import rank, synthesize_labels
from core.runner import DetectionLoop
from core.tensors import Tensor, TensorAllocator

__all__ = [
    "CameraFrameSource",
    "DetectionLoop",
    "Frame",
    "LoopState",
    "Prediction",
    "Preprocessor",
    "RankedPredictions",
    "Tensor",
    "TensorAllocator",
    "rank",
    "synthesize_labels",
]
