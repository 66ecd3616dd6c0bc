"""
Tests for the inference engine contract and backend selection.
"""

import numpy as np
import pytest

from core.errors import InferenceFailure, InvalidTensor, ModelLoadFailure
from core.tensors import TensorAllocator
from engines import OnnxEngine, TFLiteEngine, create_engine, engine_class_for
from engines.tflite_engine import _dequantize, _quantize
from tests.conftest import FakeEngine


@pytest.fixture
def tensor_factory():
    allocator = TensorAllocator()

    def factory(shape=(1, 224, 224, 3)):
        return allocator.allocate(np.zeros(shape, dtype=np.float32))

    return factory


class TestClassifyContract:
    """Tests for InferenceEngine.classify()."""

    def test_returns_flat_float_vector(self, tensor_factory):
        engine = FakeEngine(scores=(0.2, 0.5, 0.3))
        with tensor_factory() as tensor:
            probs = engine.classify(tensor)
        assert probs.shape == (3,)
        assert probs.dtype == np.float32
        np.testing.assert_allclose(probs, [0.2, 0.5, 0.3])

    def test_result_is_a_copy(self, tensor_factory):
        engine = FakeEngine(scores=(0.2, 0.8))
        with tensor_factory() as tensor:
            probs = engine.classify(tensor)
        probs[0] = 1.0
        assert engine.scores[0] == pytest.approx(0.2)

    def test_wrong_shape(self, tensor_factory):
        engine = FakeEngine()
        with tensor_factory((1, 100, 100, 3)) as tensor:
            with pytest.raises(InferenceFailure, match="expected tensor shape"):
                engine.classify(tensor)
        assert engine.calls == 0

    def test_missing_batch_dimension(self, tensor_factory):
        engine = FakeEngine()
        with tensor_factory((224, 224, 3)) as tensor:
            with pytest.raises(InferenceFailure):
                engine.classify(tensor)

    def test_backend_error_is_wrapped(self, tensor_factory):
        engine = FakeEngine(errors={0: RuntimeError("device lost")})
        with tensor_factory() as tensor:
            with pytest.raises(InferenceFailure, match="device lost") as excinfo:
                engine.classify(tensor)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_output_width_mismatch(self, tensor_factory):
        engine = FakeEngine(scores=(0.5, 0.5))

        def wrong_width(batch):
            return np.ones((1, 5), dtype=np.float32)

        engine._run = wrong_width
        with tensor_factory() as tensor:
            with pytest.raises(InferenceFailure, match="expected 2 scores"):
                engine.classify(tensor)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_scores(self, tensor_factory, bad):
        engine = FakeEngine(scores=(0.1, bad, 0.9, 0.5))
        with tensor_factory() as tensor:
            with pytest.raises(InferenceFailure, match="non-finite"):
                engine.classify(tensor)

    def test_released_tensor(self, tensor_factory):
        engine = FakeEngine()
        tensor = tensor_factory()
        tensor.release()
        with pytest.raises(InvalidTensor):
            engine.classify(tensor)


class TestEngineSelection:
    """Tests for picking a backend by model file suffix."""

    def test_tflite(self):
        assert isinstance(create_engine("models/model_unquant.tflite"), TFLiteEngine)

    def test_onnx_case_insensitive(self):
        assert engine_class_for("/tmp/Model.ONNX") is OnnxEngine

    def test_unknown_suffix(self):
        with pytest.raises(ModelLoadFailure, match="No inference backend"):
            create_engine("model.json")

    def test_unloaded_engine_reports_failure(self, tensor_factory):
        engine = create_engine("model.tflite")
        with pytest.raises(RuntimeError):
            _ = engine.input_size


class TestTFLiteQuantization:
    """Tests for uint8 model input/output conversion."""

    def test_float_input_passthrough(self):
        batch = np.full((1, 2, 2, 3), 0.5, dtype=np.float32)
        out = _quantize(batch, {"dtype": np.float32, "quantization": (0.0, 0)})
        assert out is batch

    def test_uint8_input_with_scale(self):
        batch = np.array([[0.0, 0.5, 1.0]], dtype=np.float32)
        out = _quantize(batch, {"dtype": np.uint8, "quantization": (1 / 255.0, 0)})
        assert out.dtype == np.uint8
        assert out.tolist() == [[0, 128, 255]]

    def test_uint8_input_without_scale(self):
        batch = np.array([[0.0, 1.0]], dtype=np.float32)
        out = _quantize(batch, {"dtype": np.uint8, "quantization": (0.0, 0)})
        assert out.tolist() == [[0, 255]]

    def test_uint8_output(self):
        raw = np.array([[0, 128, 255]], dtype=np.uint8)
        probs = _dequantize(raw, {"dtype": np.uint8, "quantization": (1 / 256.0, 0)})
        np.testing.assert_allclose(probs, [[0.0, 0.5, 255 / 256.0]])
