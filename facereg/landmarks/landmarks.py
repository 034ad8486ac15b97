# facereg/landmarks/landmarks.py
"""
68-point facial landmark model (TFLite) + face alignment.

Model:
- Input: [1, 112, 112, 3] face crop, float32 in [0, 1] or int8 (quantized)
- Output: [1, 136] (x0, y0, x1, y1, ...) normalized to the crop

Alignment maps 5 points derived from the 68 (eye centers, nose tip,
mouth corners) onto the ArcFace 112x112 template with a similarity
transform, which is what the recognition model expects.
"""
import logging
import threading
from typing import Optional, Tuple

import cv2
import numpy as np

from ..core.tflite_helper import get_interpreter, quantization, dequantize

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = "models/face_landmark_68/model.tflite"

NUM_LANDMARKS = 68
CROP_PADDING = 0.15

# iBUG 68-point indices
LEFT_EYE = slice(36, 42)
RIGHT_EYE = slice(42, 48)
NOSE_TIP = 30
MOUTH_LEFT = 48
MOUTH_RIGHT = 54

# ArcFace 112x112 template: left eye, right eye, nose, left mouth, right mouth
ARCFACE_TEMPLATE = np.array([
    [38.2946, 51.6963],
    [73.5318, 51.5014],
    [56.0252, 71.7366],
    [41.5493, 92.3655],
    [70.7299, 92.2041],
], dtype=np.float32)


def square_crop_box(box, frame_shape, padding: float = CROP_PADDING) -> Tuple[int, int, int, int]:
    """Expand (x, y, w, h) to a padded square, clipped to the frame."""
    h_img, w_img = frame_shape[:2]
    x, y, w, h = box
    side = max(w, h) * (1.0 + 2 * padding)
    cx, cy = x + w / 2.0, y + h / 2.0

    x1 = int(max(0, round(cx - side / 2)))
    y1 = int(max(0, round(cy - side / 2)))
    x2 = int(min(w_img, round(cx + side / 2)))
    y2 = int(min(h_img, round(cy + side / 2)))
    return x1, y1, x2 - x1, y2 - y1


def landmarks_to_5pt(landmarks: np.ndarray) -> np.ndarray:
    """(68, 2) -> (5, 2) in [Leye, Reye, Nose, Lmouth, Rmouth] order."""
    pts = np.asarray(landmarks, dtype=np.float32).reshape(NUM_LANDMARKS, 2)
    kps = np.stack([
        pts[LEFT_EYE].mean(axis=0),
        pts[RIGHT_EYE].mean(axis=0),
        pts[NOSE_TIP],
        pts[MOUTH_LEFT],
        pts[MOUTH_RIGHT],
    ], axis=0)

    # enforce left/right ordering (mirrored frames)
    if kps[0, 0] > kps[1, 0]:
        kps[[0, 1]] = kps[[1, 0]]
    if kps[3, 0] > kps[4, 0]:
        kps[[3, 4]] = kps[[4, 3]]
    return kps


def estimate_alignment(kps_5x2: np.ndarray, out_size: Tuple[int, int] = (112, 112)) -> np.ndarray:
    """2x3 similarity transform mapping the 5 points to the ArcFace template."""
    k = np.asarray(kps_5x2, dtype=np.float32)

    out_w, out_h = int(out_size[0]), int(out_size[1])
    dst = ARCFACE_TEMPLATE
    if (out_w, out_h) != (112, 112):
        dst = dst * np.array([out_w / 112.0, out_h / 112.0], dtype=np.float32)

    M, _ = cv2.estimateAffinePartial2D(k, dst, method=cv2.LMEDS)

    if M is None:
        # degenerate points: fall back to eyes + nose
        M = cv2.getAffineTransform(k[:3].copy(), dst[:3].copy())
    return M.astype(np.float32)


def align_face(frame: np.ndarray, landmarks: np.ndarray,
               out_size: Tuple[int, int] = (112, 112)) -> np.ndarray:
    """Warp the face described by 68 full-frame landmarks to out_size."""
    M = estimate_alignment(landmarks_to_5pt(landmarks), out_size=out_size)
    return cv2.warpAffine(
        frame,
        M,
        (int(out_size[0]), int(out_size[1])),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0),
    )


class FaceLandmark68:
    """
    68-point landmark localizer. Thread-safe.
    """

    def __init__(self, model_path=DEFAULT_MODEL_PATH, interpreter=None):
        self._inference_lock = threading.Lock()
        self.model_path = model_path

        self.interpreter = interpreter if interpreter is not None else get_interpreter(model_path)
        self.interpreter.allocate_tensors()
        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()

        shape = tuple(int(d) for d in self.input_details[0]['shape'])
        self.input_height = shape[1] if len(shape) >= 3 else 112
        self.input_width = shape[2] if len(shape) >= 3 else 112

        self._input_index = self.input_details[0]['index']
        self._output_index = self.output_details[0]['index']
        self._input_dtype = self.input_details[0]['dtype']
        self._input_scale, self._input_zero_point = quantization(self.input_details[0])
        self._output_scale, self._output_zero_point = quantization(self.output_details[0])

        logger.info(f"[Landmarks] Loaded: {model_path} ({self.input_width}x{self.input_height})")

    def _preprocess(self, crop):
        img = cv2.resize(crop, (self.input_width, self.input_height))
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB).astype(np.float32) / 255.0

        if self._input_dtype in (np.int8, np.uint8):
            info = np.iinfo(self._input_dtype)
            img = np.clip(
                np.round(img / self._input_scale + self._input_zero_point),
                info.min, info.max
            ).astype(self._input_dtype)

        return np.expand_dims(img, axis=0)

    def detect_landmarks(self, frame, box) -> Optional[np.ndarray]:
        """
        Locate 68 landmarks for the face in `box` (x, y, w, h).

        Returns:
            (68, 2) float32 in full-frame pixel coordinates, or None if the
            crop is empty
        """
        x, y, w, h = square_crop_box(box, frame.shape)
        crop = frame[y:y + h, x:x + w]
        if crop.size == 0 or w < 2 or h < 2:
            return None

        img = self._preprocess(crop)
        with self._inference_lock:
            self.interpreter.set_tensor(self._input_index, img)
            self.interpreter.invoke()
            output = np.array(self.interpreter.get_tensor(self._output_index), copy=True)

        pts = dequantize(output, self._output_scale, self._output_zero_point)
        pts = pts.reshape(-1)[:NUM_LANDMARKS * 2].reshape(NUM_LANDMARKS, 2)

        pts[:, 0] = pts[:, 0] * w + x
        pts[:, 1] = pts[:, 1] * h + y
        return pts.astype(np.float32)
