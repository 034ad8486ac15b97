# facereg/processing/analyzer.py
"""
Face analysis chain: detection -> landmarks -> descriptor.

Usage:
    analyzer = FaceAnalyzer(detector, landmarker, recognizer)
    detection = analyzer.detect_single_face(frame)
    if detection is not None:
        descriptor = detection.descriptor
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..detect import DetectionOptions
from ..landmarks import align_face

logger = logging.getLogger(__name__)


@dataclass
class FaceDetection:
    """Single-face result: box (x, y, w, h), landmarks (68, 2), descriptor (D,)."""
    box: Tuple[int, int, int, int]
    score: float
    landmarks: Optional[np.ndarray] = None
    descriptor: Optional[np.ndarray] = None


class FaceAnalyzer:
    """Runs the three models in sequence for the best face of a frame."""

    def __init__(self, detector, landmarker, recognizer, options: Optional[DetectionOptions] = None):
        self.detector = detector
        self.landmarker = landmarker
        self.recognizer = recognizer
        self.options = options or DetectionOptions()

    @property
    def embedding_dim(self) -> int:
        return self.recognizer.embedding_dim

    def detect_single_face(self, frame, options: Optional[DetectionOptions] = None) -> Optional[FaceDetection]:
        """
        Returns:
            FaceDetection with a descriptor, a FaceDetection without one if
            landmarks could not be located, or None if no face was found
        """
        opts = options or self.options
        face = self.detector.detect_single_face(frame, opts)
        if face is None:
            logger.debug("No face detected")
            return None

        result = FaceDetection(box=face.box, score=face.confidence)

        landmarks = self.landmarker.detect_landmarks(frame, face.box)
        if landmarks is None:
            logger.debug(f"No landmarks for box {face.box}")
            return result
        result.landmarks = landmarks

        aligned = align_face(frame, landmarks, out_size=(self.recognizer.input_width,
                                                         self.recognizer.input_height))
        result.descriptor = self.recognizer.compute_descriptor(aligned)
        return result
