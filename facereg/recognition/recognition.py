# facereg/recognition/recognition.py
"""
Face Recognition module - descriptor extraction
================================================
Model: MobileFaceNet-style TFLite (float32 or INT8 quantized)
Input: [1, 112, 112, 3] aligned face
Output: [1, 128] embedding (dequantized to float32, L2 normalized)

Thread-safe: the TFLite interpreter is guarded by a lock.
"""
import logging
import threading

import cv2
import numpy as np

from ..core.tflite_helper import get_interpreter, quantization, dequantize

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = "models/face_recognition/model.tflite"

INPUT_HEIGHT = 112
INPUT_WIDTH = 112
EMBEDDING_DIM = 128


def euclidean_distance(a, b) -> float:
    """Straight-line distance between two descriptors."""
    va = np.asarray(a, dtype=np.float32).reshape(-1)
    vb = np.asarray(b, dtype=np.float32).reshape(-1)
    if va.shape != vb.shape:
        raise ValueError(f"Descriptor dims differ: {va.shape[0]} != {vb.shape[0]}")
    return float(np.linalg.norm(va - vb))


class FaceRecognizer:
    """
    Descriptor extractor.

    Embedding dim is read from the model output (128 for the bundled model).
    """

    def __init__(self, model_path=DEFAULT_MODEL_PATH, enable_histogram_eq=False, interpreter=None):
        """
        Args:
            model_path: path to the TFLite model
            enable_histogram_eq: equalize luminance before inference
            interpreter: pre-built interpreter (tests)
        """
        self._inference_lock = threading.Lock()

        self.model_path = model_path
        self.enable_histogram_eq = enable_histogram_eq

        self.interpreter = interpreter if interpreter is not None else get_interpreter(model_path)
        self.interpreter.allocate_tensors()
        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()

        self._input_dtype = self.input_details[0]['dtype']

        raw_shape = self.input_details[0].get('shape', [1, INPUT_HEIGHT, INPUT_WIDTH, 3])
        input_shape = tuple(int(dim) for dim in raw_shape)
        self.input_height = int(input_shape[1]) if len(input_shape) >= 2 else INPUT_HEIGHT
        self.input_width = int(input_shape[2]) if len(input_shape) >= 3 else INPUT_WIDTH

        output_shape = self.output_details[0].get('shape', [1, EMBEDDING_DIM])
        self._embedding_dim = int(output_shape[-1]) if len(output_shape) >= 2 else EMBEDDING_DIM

        self._input_scale, self._input_zero_point = quantization(self.input_details[0])
        self._output_scale, self._output_zero_point = quantization(self.output_details[0])

        self._input_index = self.input_details[0]['index']
        self._output_index = self.output_details[0]['index']

        logger.info(f"[Recognizer] Loaded: {model_path}")
        logger.info(f"[Recognizer] Embedding dim: {self._embedding_dim}")

    def _preprocess(self, face_img):
        """
        1. Resize to model input
        2. BGR -> RGB
        3. (Optional) histogram equalization
        4. Normalize to [-1, 1], quantize for INT8/UINT8 models
        """
        img = cv2.resize(face_img, (self.input_width, self.input_height))
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

        if self.enable_histogram_eq:
            img_yuv = cv2.cvtColor(img, cv2.COLOR_RGB2YUV)
            img_yuv[:, :, 0] = cv2.equalizeHist(img_yuv[:, :, 0])
            img = cv2.cvtColor(img_yuv, cv2.COLOR_YUV2RGB)

        img_float = (img.astype(np.float32) - 127.5) / 127.5
        if self._input_dtype in (np.int8, np.uint8):
            info = np.iinfo(self._input_dtype)
            img = np.clip(
                np.round(img_float / self._input_scale + self._input_zero_point),
                info.min, info.max
            ).astype(self._input_dtype)
        else:
            img = img_float

        return np.expand_dims(img, axis=0)

    def compute_descriptor(self, aligned_face):
        """
        Extract the descriptor of an aligned face.

        Args:
            aligned_face: BGR image (numpy array), ideally 112x112 aligned

        Returns:
            numpy array shape (embedding_dim,), float32, L2 normalized
        """
        img = self._preprocess(aligned_face)

        with self._inference_lock:
            self.interpreter.set_tensor(self._input_index, img)
            self.interpreter.invoke()
            output = self.interpreter.get_tensor(self._output_index)
            output = dequantize(output, self._output_scale, self._output_zero_point)
            emb = np.array(output[0], dtype=np.float32, copy=True).reshape(-1)

        return emb / (np.linalg.norm(emb) + 1e-10)

    @property
    def embedding_dim(self):
        return self._embedding_dim
