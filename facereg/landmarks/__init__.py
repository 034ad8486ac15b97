# facereg/landmarks/__init__.py
"""
Facial landmarks (68 points) and alignment.
"""

from .landmarks import FaceLandmark68, align_face, landmarks_to_5pt

__all__ = [
    'FaceLandmark68',
    'align_face',
    'landmarks_to_5pt',
]
