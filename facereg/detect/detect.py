# facereg/detect/detect.py
"""
Face Detection module - tiny SSD-style face detector (TFLite).

The model is fully convolutional, so the input tensor is resized to the
square `input_size` requested by DetectionOptions (default 128):
- Input: [1, S, S, 3] float32 or int8 (quantized)
- Output: boxes [1, N, 4] and scores [1, N, 2] (without post-processing)

Priors (anchors) are generated for the chosen input size and cached.
Thread-safe: the TFLite interpreter is guarded by a lock.
"""
import logging
import threading
from dataclasses import dataclass
from math import ceil
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..core.tflite_helper import get_interpreter, quantization, dequantize

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = "models/tiny_face_detector/model.tflite"

FEATURE_STRIDES = (8, 16, 32, 64)
MIN_SIZES = ((10, 16, 24), (32, 48), (64, 96), (128, 176, 256))
VARIANCES = (0.1, 0.2)


@dataclass(frozen=True)
class DetectionOptions:
    """Per-call detector configuration."""
    input_size: int = 128
    score_threshold: float = 0.3
    nms_threshold: float = 0.3


@dataclass
class FaceBox:
    """One detected face, box in frame pixels (x, y, w, h)."""
    box: Tuple[int, int, int, int]
    confidence: float


def generate_priors(input_shape: Tuple[int, int]) -> np.ndarray:
    """
    Anchor boxes (cx, cy, w, h), normalized to [0, 1], for an input of
    (width, height).
    """
    width, height = input_shape

    feature_map_sizes = [(ceil(height / s), ceil(width / s)) for s in FEATURE_STRIDES]

    total = sum(fh * fw * len(ms) for (fh, fw), ms in zip(feature_map_sizes, MIN_SIZES))
    priors = np.empty((total, 4), dtype=np.float32)

    idx = 0
    for k, (fh, fw) in enumerate(feature_map_sizes):
        for y in range(fh):
            cy = (y + 0.5) / fh
            for x in range(fw):
                cx = (x + 0.5) / fw
                for min_size in MIN_SIZES[k]:
                    priors[idx] = [cx, cy, min_size / width, min_size / height]
                    idx += 1

    return np.clip(priors, 0.0, 1.0)


def decode_boxes(encoded: np.ndarray, priors: np.ndarray) -> np.ndarray:
    """SSD decoding: offsets relative to priors -> (x_min, y_min, x_max, y_max), normalized."""
    boxes = np.concatenate([
        priors[:, :2] + encoded[:, :2] * VARIANCES[0] * priors[:, 2:],
        priors[:, 2:] * np.exp(encoded[:, 2:] * VARIANCES[1])
    ], axis=1)

    boxes[:, :2] -= boxes[:, 2:] / 2
    boxes[:, 2:] += boxes[:, :2]
    return boxes


class TinyFaceDetector:
    """
    Face detector wrapping a TFLite SSD model. Thread-safe.
    """

    def __init__(self, model_path=DEFAULT_MODEL_PATH, options: Optional[DetectionOptions] = None,
                 interpreter=None):
        self._inference_lock = threading.Lock()

        self.model_path = model_path
        self.options = options or DetectionOptions()

        self.interpreter = interpreter if interpreter is not None else get_interpreter(model_path)
        self.input_details = self.interpreter.get_input_details()
        self._input_index = self.input_details[0]['index']
        self._input_dtype = self.input_details[0]['dtype']
        self._input_scale, self._input_zero_point = quantization(self.input_details[0])

        self._input_size = None
        self._priors_cache = None
        self._prepare(self.options.input_size)

        logger.info(f"[Detector] Loaded: {model_path}")
        logger.debug(f"[Detector] Input: size={self._input_size}, dtype={self._input_dtype}, "
                     f"scale={self._input_scale}, zp={self._input_zero_point}")

    def _prepare(self, input_size):
        """Resize the input tensor to (input_size x input_size) and rebuild priors."""
        input_size = int(input_size)
        if input_size == self._input_size:
            return

        self.interpreter.resize_tensor_input(self._input_index, [1, input_size, input_size, 3])
        self.interpreter.allocate_tensors()
        self.output_details = self.interpreter.get_output_details()
        self._output_indices = [d['index'] for d in self.output_details]
        self._output_params = [quantization(d) for d in self.output_details]

        self._input_size = input_size
        self._priors_cache = generate_priors((input_size, input_size))

    def _preprocess(self, frame):
        """
        1. Resize to S x S
        2. BGR -> RGB
        3. Normalize to [-1, 1]
        4. Quantize when the model expects int8/uint8
        """
        size = self._input_size
        img_rgb = cv2.cvtColor(cv2.resize(frame, (size, size)), cv2.COLOR_BGR2RGB)
        img_float = (img_rgb.astype(np.float32) - 127.5) / 127.5

        if self._input_dtype == np.int8:
            img = np.clip(
                np.round(img_float / self._input_scale + self._input_zero_point),
                -128, 127
            ).astype(np.int8)
        elif self._input_dtype == np.uint8:
            img = np.clip(
                np.round(img_float / self._input_scale + self._input_zero_point),
                0, 255
            ).astype(np.uint8)
        else:
            img = img_float

        return np.expand_dims(img, axis=0)

    def detect_faces(self, frame, options: Optional[DetectionOptions] = None) -> List[FaceBox]:
        """
        Detect faces in a BGR frame.

        Returns:
            List of FaceBox, highest confidence first
        """
        opts = options or self.options
        h_img, w_img = frame.shape[:2]

        with self._inference_lock:
            self._prepare(opts.input_size)
            img_input = self._preprocess(frame)
            priors_all = self._priors_cache

            self.interpreter.set_tensor(self._input_index, img_input)
            self.interpreter.invoke()

            out_0 = np.array(self.interpreter.get_tensor(self._output_indices[0])[0], copy=True)
            out_1 = np.array(self.interpreter.get_tensor(self._output_indices[1])[0], copy=True)

        out_0 = dequantize(out_0, *self._output_params[0])
        out_1 = dequantize(out_1, *self._output_params[1])

        # boxes have shape [..., 4], scores [..., 2]
        if out_0.shape[-1] == 4:
            boxes_enc, scores = out_0, out_1
        else:
            boxes_enc, scores = out_1, out_0

        if len(boxes_enc) != len(priors_all) or len(scores) != len(priors_all):
            raise ValueError(
                f"Detector output has {len(boxes_enc)} boxes for {len(priors_all)} priors "
                f"at input {self._input_size}x{self._input_size}; the model input is not resizable"
            )

        # class 1 = face
        scores = scores[:, 1]

        mask = scores > opts.score_threshold
        scores_filtered = scores[mask]
        if len(scores_filtered) == 0:
            return []

        boxes = decode_boxes(boxes_enc[mask], priors_all[mask])
        boxes[:, 0] *= w_img
        boxes[:, 2] *= w_img
        boxes[:, 1] *= h_img
        boxes[:, 3] *= h_img

        # NMSBoxes expects (x, y, w, h)
        rects = boxes.astype(int)
        xywh = np.stack([rects[:, 0], rects[:, 1],
                         rects[:, 2] - rects[:, 0], rects[:, 3] - rects[:, 1]], axis=1)
        keep = cv2.dnn.NMSBoxes(xywh.tolist(), scores_filtered.tolist(),
                                opts.score_threshold, opts.nms_threshold)

        results = []
        for i in np.asarray(keep).flatten():
            x_min, y_min, x_max, y_max = rects[i]
            x = max(0, int(x_min))
            y = max(0, int(y_min))
            w = min(int(x_max), w_img) - x
            h = min(int(y_max), h_img) - y
            if w <= 0 or h <= 0:
                continue
            results.append(FaceBox(box=(x, y, w, h), confidence=float(scores_filtered[i])))

        results.sort(key=lambda f: f.confidence, reverse=True)
        return results

    def detect_single_face(self, frame, options: Optional[DetectionOptions] = None) -> Optional[FaceBox]:
        """Highest-scoring face in the frame, or None."""
        faces = self.detect_faces(frame, options)
        return faces[0] if faces else None
