from __future__ import annotations

import threading

import numpy as np
import pytest

from facereg.core.model_factory import ModelLoader
from facereg.data.store import EnrollmentStore
from facereg.landmarks.landmarks import ARCFACE_TEMPLATE
from facereg.processing.analyzer import FaceDetection
from facereg.processing.session import FaceSession

DIM = 128


def vec(*values: float) -> np.ndarray:
    """128-d descriptor whose first components are `values`, rest zero."""
    out = np.zeros(DIM, dtype=np.float32)
    out[: len(values)] = values
    return out


class FakeCamera:
    def __init__(self, frame=None, available: bool = True):
        self.frame = frame if frame is not None else np.zeros((240, 320, 3), dtype=np.uint8)
        self.available = available
        self.reads = 0

    def read(self):
        self.reads += 1
        if not self.available:
            return None
        return self.frame.copy()

    def read_jpeg(self):
        if not self.available:
            return None
        return b"\xff\xd8fake-jpeg\xff\xd9"


class FakeAnalyzer:
    """Returns queued descriptors; None in the queue means "no face"."""

    embedding_dim = DIM

    def __init__(self, descriptors=None):
        self.descriptors = list(descriptors or [])
        self.calls = 0

    def detect_single_face(self, frame, options=None):
        self.calls += 1
        d = self.descriptors.pop(0) if self.descriptors else None
        if d is None:
            return None
        return FaceDetection(box=(10, 10, 50, 50), score=0.9, descriptor=np.asarray(d, dtype=np.float32))


class BlockingAnalyzer(FakeAnalyzer):
    """Blocks inside detection until released."""

    def __init__(self, descriptors=None):
        super().__init__(descriptors)
        self.entered = threading.Event()
        self.release = threading.Event()

    def detect_single_face(self, frame, options=None):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().detect_single_face(frame, options)


class FakeInterpreter:
    """Minimal stand-in for tflite Interpreter."""

    def __init__(self, input_shape, input_dtype=np.float32, outputs=None, input_quant=None):
        self.input_shape = list(input_shape)
        self.input_dtype = input_dtype
        self.input_quant = input_quant
        self.outputs = outputs or {}
        self.inputs = []
        self.resized = []

    def get_input_details(self):
        return [{
            'index': 0,
            'dtype': self.input_dtype,
            'shape': np.array(self.input_shape),
            'quantization_parameters': self._quant_params(self.input_quant),
        }]

    @staticmethod
    def _quant_params(quant):
        if quant is None:
            return {'scales': np.array([]), 'zero_points': np.array([])}
        scale, zero_point = quant
        return {'scales': np.array([scale]), 'zero_points': np.array([zero_point])}

    def get_output_details(self):
        return [
            {
                'index': index,
                'dtype': np.float32,
                'shape': np.array(value.shape),
                'quantization_parameters': {'scales': np.array([]), 'zero_points': np.array([])},
            }
            for index, value in sorted(self.outputs.items())
        ]

    def resize_tensor_input(self, index, shape):
        self.resized.append(list(shape))
        self.input_shape = list(shape)

    def allocate_tensors(self):
        pass

    def set_tensor(self, index, value):
        self.inputs.append(value)

    def invoke(self):
        pass

    def get_tensor(self, index):
        return self.outputs[index]


def make_loader(analyzer=None, ready: bool = True) -> ModelLoader:
    loader = ModelLoader(
        detector_factory=lambda: "detector",
        landmark_factory=lambda: "landmarks",
        recognizer_factory=lambda: "recognizer",
        analyzer_factory=lambda d, l, r: analyzer if analyzer is not None else FakeAnalyzer(),
    )
    if ready:
        assert loader.load_all()
    return loader


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def make_session(camera):
    def _make(descriptors=None, ready=True, analyzer=None, threshold=0.6):
        analyzer = analyzer if analyzer is not None else FakeAnalyzer(descriptors)
        session = FaceSession(
            camera=camera,
            loader=make_loader(analyzer, ready=ready),
            store=EnrollmentStore(embedding_dim=DIM),
            threshold=threshold,
        )
        return session, analyzer

    return _make


def template_landmarks(scale=1.0, offset=(0.0, 0.0)) -> np.ndarray:
    """68 points whose 5-point summary is the ArcFace template."""
    pts = np.zeros((68, 2), dtype=np.float32)
    t = ARCFACE_TEMPLATE * scale + np.asarray(offset, dtype=np.float32)
    pts[36:42] = t[0]
    pts[42:48] = t[1]
    pts[30] = t[2]
    pts[48] = t[3]
    pts[54] = t[4]
    return pts
