# facereg/processing/__init__.py
"""
Processing modules - face analysis chain and session flows.

- analyzer: detection -> landmarks -> descriptor
- session: registration / recognition flows
"""

from .analyzer import FaceAnalyzer, FaceDetection
from .session import FaceSession, FlowResult, FlowStatus

__all__ = [
    'FaceAnalyzer',
    'FaceDetection',
    'FaceSession',
    'FlowResult',
    'FlowStatus',
]
