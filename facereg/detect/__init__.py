# facereg/detect/__init__.py
"""
Face Detection module.

Exports:
- TinyFaceDetector: TFLite SSD face detector
- DetectionOptions: per-call input size / score threshold
- FaceBox: one detection
"""

from .detect import TinyFaceDetector, DetectionOptions, FaceBox, generate_priors

__all__ = [
    'TinyFaceDetector',
    'DetectionOptions',
    'FaceBox',
    'generate_priors',
]
