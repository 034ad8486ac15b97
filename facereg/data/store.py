# facereg/data/store.py
"""
Enrollment store - in-memory, insertion-ordered.

Each entry is an EnrolledFace(id="userN", descriptor). Ids come from a
counter starting at 1. Entries are never modified or removed, and nothing
is persisted: the store lives as long as the process.

Thread-safe: all access goes through a lock (flows + web server threads).
"""
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrolledFace:
    id: str
    descriptor: np.ndarray


@dataclass(frozen=True)
class MatchResult:
    """Nearest stored face for a query descriptor."""
    id: str
    distance: float

    @property
    def distance_str(self) -> str:
        return f"{self.distance:.3f}"


class EnrollmentStore:
    """
    Ordered collection of enrolled faces.
    """

    def __init__(self, embedding_dim: int = 128, id_prefix: str = "user"):
        self.embedding_dim = int(embedding_dim)
        self.id_prefix = id_prefix

        self._lock = threading.Lock()
        self._faces: List[EnrolledFace] = []
        self._next_index = 1

    def _validate(self, descriptor) -> np.ndarray:
        arr = np.asarray(descriptor, dtype=np.float32).reshape(-1)
        if arr.shape[0] != self.embedding_dim:
            raise ValueError(f"Descriptor dim {arr.shape[0]} != {self.embedding_dim}")
        if not np.all(np.isfinite(arr)):
            raise ValueError("Descriptor contains NaN/inf")
        arr = arr.copy()
        arr.setflags(write=False)
        return arr

    def add(self, descriptor) -> EnrolledFace:
        """Append a new face with the next sequential id. Returns the new entry."""
        arr = self._validate(descriptor)
        with self._lock:
            face = EnrolledFace(id=f"{self.id_prefix}{self._next_index}", descriptor=arr)
            self._faces.append(face)
            self._next_index += 1
        logger.debug(f"Enrolled {face.id} (total {len(self)})")
        return face

    def find_best_match(self, query) -> Optional[MatchResult]:
        """
        Linear scan for the stored face nearest to `query` (Euclidean).

        Ties keep the earliest-inserted entry. Returns None for an empty store.
        """
        q = np.asarray(query, dtype=np.float32).reshape(-1)
        if q.shape[0] != self.embedding_dim:
            raise ValueError(f"Descriptor dim {q.shape[0]} != {self.embedding_dim}")

        with self._lock:
            faces = list(self._faces)
        if not faces:
            return None

        matrix = np.stack([f.descriptor for f in faces], axis=0)
        distances = np.linalg.norm(matrix - q, axis=1)

        # argmin returns the first index among equal minima
        best = int(np.argmin(distances))
        return MatchResult(id=faces[best].id, distance=float(distances[best]))

    def ids(self) -> List[str]:
        with self._lock:
            return [f.id for f in self._faces]

    def is_empty(self) -> bool:
        return len(self) == 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._faces)
