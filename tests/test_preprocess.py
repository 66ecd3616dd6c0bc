"""
Tests for frame preprocessing and tensor ownership.
"""

import cv2
import numpy as np
import pytest

from core.errors import InvalidFrame, InvalidTensor
from core.models import Frame
from core.preprocess import Preprocessor
from core.tensors import TensorAllocator
from tests.conftest import make_frame


class TestPreprocessor:
    """Tests for Preprocessor.prepare()."""

    def test_shape_dtype_and_range(self, preprocessor):
        frame = make_frame(color=(10, 128, 255))
        with preprocessor.prepare(frame) as tensor:
            data = tensor.data
            assert data.shape == (1, 224, 224, 3)
            assert data.dtype == np.float32
            assert data.min() >= 0.0
            assert data.max() <= 1.0

    def test_bgr_frame_becomes_rgb(self, preprocessor):
        # Pure blue in OpenCV's BGR order
        frame = make_frame(color=(255, 0, 0))
        with preprocessor.prepare(frame) as tensor:
            pixel = tensor.data[0, 100, 100]
        assert pixel == pytest.approx([0.0, 0.0, 1.0])

    def test_bilinear_resize(self, allocator):
        rng = np.random.default_rng(0)
        pixels = rng.integers(0, 256, size=(30, 40, 3), dtype=np.uint8)
        frame = Frame(pixels=pixels, index=0, timestamp_s=0.0)
        pre = Preprocessor(allocator, (16, 20))
        with pre.prepare(frame) as tensor:
            rgb = cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB)
            expected = cv2.resize(rgb, (20, 16), interpolation=cv2.INTER_LINEAR) / 255.0
            np.testing.assert_allclose(tensor.data[0], expected, atol=1e-6)

    def test_grayscale_frame(self, preprocessor):
        frame = Frame(pixels=np.full((50, 60), 51, dtype=np.uint8), index=0, timestamp_s=0.0)
        with preprocessor.prepare(frame) as tensor:
            assert tensor.shape == (1, 224, 224, 3)
            assert tensor.data[0, 0, 0] == pytest.approx([0.2, 0.2, 0.2])

    def test_zero_area_frame(self, preprocessor, allocator):
        frame = Frame(pixels=np.zeros((0, 640, 3), dtype=np.uint8), index=3, timestamp_s=0.0)
        with pytest.raises(InvalidFrame):
            preprocessor.prepare(frame)
        assert allocator.outstanding == 0

    def test_unsupported_channel_count(self, preprocessor, allocator):
        frame = Frame(pixels=np.zeros((10, 10, 2), dtype=np.uint8), index=0, timestamp_s=0.0)
        with pytest.raises(InvalidFrame):
            preprocessor.prepare(frame)
        assert allocator.outstanding == 0

    def test_input_frame_untouched(self, preprocessor):
        frame = make_frame(color=(1, 2, 3))
        before = frame.pixels.copy()
        tensor = preprocessor.prepare(frame)
        tensor.release()
        np.testing.assert_array_equal(frame.pixels, before)

    def test_tensor_does_not_alias_frame(self, preprocessor):
        frame = make_frame(height=224, width=224)
        with preprocessor.prepare(frame) as tensor:
            assert not np.shares_memory(tensor.data, frame.pixels)

    def test_invalid_input_size(self, allocator):
        with pytest.raises(ValueError):
            Preprocessor(allocator, (0, 224))


class TestTensorAllocator:
    """Tests for tensor release bookkeeping."""

    def test_outstanding_counts(self):
        allocator = TensorAllocator()
        a = allocator.allocate(np.zeros(3))
        b = allocator.allocate(np.zeros(3))
        assert allocator.outstanding == 2
        a.release()
        assert allocator.outstanding == 1
        b.release()
        assert allocator.outstanding == 0
        assert allocator.total_allocated == 2

    def test_release_is_idempotent(self):
        allocator = TensorAllocator()
        tensor = allocator.allocate(np.zeros(3))
        tensor.release()
        tensor.release()
        assert allocator.outstanding == 0
        assert tensor.released

    def test_data_after_release(self):
        tensor = TensorAllocator().allocate(np.zeros((1, 2)))
        tensor.release()
        assert tensor.shape == (1, 2)
        with pytest.raises(InvalidTensor):
            _ = tensor.data

    def test_context_manager_releases_on_error(self):
        allocator = TensorAllocator()
        with pytest.raises(RuntimeError):
            with allocator.allocate(np.zeros(3)):
                raise RuntimeError("boom")
        assert allocator.outstanding == 0
