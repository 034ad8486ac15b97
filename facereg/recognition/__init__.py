# facereg/recognition/__init__.py
"""
Face Recognition module.

- Model: MobileFaceNet-style TFLite
- Descriptor: 128-dim, L2 normalized
"""

from .recognition import FaceRecognizer, euclidean_distance

__all__ = [
    'FaceRecognizer',
    'euclidean_distance',
]
