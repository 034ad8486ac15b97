# facereg/data/__init__.py
"""
Data layer - in-memory enrollment store.
"""
from .store import EnrollmentStore, EnrolledFace, MatchResult

__all__ = [
    'EnrollmentStore',
    'EnrolledFace',
    'MatchResult',
]
