# facereg/processing/session.py
"""
Face session - registration and recognition flows.

A FaceSession owns everything one UI session needs: the model loader
(readiness), the camera, the enrollment store and the current status
message. Both flows run under a non-blocking lock so a double click cannot
start two inferences at once.

Usage:
    session = FaceSession(camera, loader)
    session.start_loading()

    result = session.register()
    if result.success:
        print(result.face.id)

    result = session.recognize()
    print(result.message)
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..data.store import EnrollmentStore, EnrolledFace, MatchResult

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6

MSG_MODELS_NOT_LOADED = "Models are not loaded yet!"
MSG_NO_CAMERA = "No camera access."
MSG_SEARCH_REGISTER = "Searching for a face to register..."
MSG_SEARCH_RECOGNIZE = "Searching for a face to recognize..."
MSG_FACE_NOT_FOUND = "Face not found. Try again."
MSG_REGISTERED = "Face registered as {id}"
MSG_NO_USERS = "No registered users to compare."
MSG_RECOGNIZED = "Recognized face: {id} (distance {distance})"
MSG_NOT_RECOGNIZED = "Face not recognized."
MSG_BUSY = "Another operation is in progress."
MSG_PROCESSING_ERROR = "Face processing error"


class FlowStatus(Enum):
    """Outcome of a registration/recognition run."""
    REGISTERED = "registered"
    RECOGNIZED = "recognized"
    NOT_RECOGNIZED = "not_recognized"
    FACE_NOT_FOUND = "face_not_found"
    MODELS_NOT_LOADED = "models_not_loaded"
    NO_CAMERA = "no_camera"
    NO_USERS = "no_users"
    BUSY = "busy"


@dataclass
class FlowResult:
    status: FlowStatus
    message: str
    face: Optional[EnrolledFace] = None
    match: Optional[MatchResult] = None

    @property
    def success(self) -> bool:
        return self.status in (FlowStatus.REGISTERED, FlowStatus.RECOGNIZED)


class FaceSession:
    """
    Session-scoped context shared by both flows and the web layer.
    """

    def __init__(self, camera, loader, store: Optional[EnrollmentStore] = None,
                 threshold: float = DEFAULT_THRESHOLD):
        """
        Args:
            camera: object with read() -> frame or None
            loader: ModelLoader (ready, status, analyzer)
            store: EnrollmentStore (new empty store by default)
            threshold: match if distance < threshold
        """
        self.camera = camera
        self.loader = loader
        self.store = store if store is not None else EnrollmentStore()
        self.threshold = float(threshold)

        self._flow_lock = threading.Lock()
        self._message_lock = threading.Lock()
        self._message = ""
        self._loader_thread = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def models_loaded(self) -> bool:
        return self.loader.ready

    @property
    def busy(self) -> bool:
        return self._flow_lock.locked()

    @property
    def message(self) -> str:
        with self._message_lock:
            return self._message

    def _set_message(self, message: str):
        with self._message_lock:
            self._message = message

    @property
    def can_register(self) -> bool:
        return self.models_loaded

    @property
    def can_recognize(self) -> bool:
        return self.models_loaded and not self.store.is_empty()

    def state(self) -> dict:
        """Snapshot for the presentation layer."""
        return {
            'models_loaded': self.models_loaded,
            'message': self.message,
            'users': self.store.ids(),
            'can_register': self.can_register,
            'can_recognize': self.can_recognize,
            'busy': self.busy,
        }

    # ------------------------------------------------------------------
    # Model loading
    # ------------------------------------------------------------------
    def load_models(self) -> bool:
        """Load models (blocking) and publish the loader status."""
        self._set_message(self.loader.status or "Loading models...")
        ok = self.loader.load_all()
        self._set_message(self.loader.status)
        return ok

    def start_loading(self) -> threading.Thread:
        """Load models in a background thread."""
        if self._loader_thread is None:
            self._loader_thread = threading.Thread(
                target=self.load_models, name='model-loader', daemon=True
            )
            self._loader_thread.start()
        return self._loader_thread

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------
    def _finish(self, status: FlowStatus, message: str, **kwargs) -> FlowResult:
        self._set_message(message)
        return FlowResult(status=status, message=message, **kwargs)

    def _guarded(self, step, *args):
        """Run an analysis or store step; failures leave "Face processing error" as status."""
        try:
            return step(*args)
        except Exception:
            logger.exception("Face processing failed")
            self._set_message(MSG_PROCESSING_ERROR)
            raise

    def _detect(self, frame):
        """Run the analyzer; None when no usable descriptor was produced."""
        detection = self._guarded(self.loader.analyzer.detect_single_face, frame)
        if detection is None or detection.descriptor is None:
            return None
        return detection

    def register(self) -> FlowResult:
        """
        Capture one frame, extract a descriptor and enroll it as userN.
        """
        if not self._flow_lock.acquire(blocking=False):
            return FlowResult(status=FlowStatus.BUSY, message=MSG_BUSY)
        try:
            if not self.models_loaded:
                return self._finish(FlowStatus.MODELS_NOT_LOADED, MSG_MODELS_NOT_LOADED)

            frame = self.camera.read()
            if frame is None:
                return self._finish(FlowStatus.NO_CAMERA, MSG_NO_CAMERA)

            self._set_message(MSG_SEARCH_REGISTER)
            detection = self._detect(frame)
            if detection is None:
                return self._finish(FlowStatus.FACE_NOT_FOUND, MSG_FACE_NOT_FOUND)

            face = self._guarded(self.store.add, detection.descriptor)
            logger.info(f"Registered {face.id}. Users: {self.store.ids()}")
            return self._finish(FlowStatus.REGISTERED, MSG_REGISTERED.format(id=face.id), face=face)
        finally:
            self._flow_lock.release()

    def recognize(self) -> FlowResult:
        """
        Capture one frame and compare its descriptor with every enrolled face.
        """
        if not self._flow_lock.acquire(blocking=False):
            return FlowResult(status=FlowStatus.BUSY, message=MSG_BUSY)
        try:
            if not self.models_loaded:
                return self._finish(FlowStatus.MODELS_NOT_LOADED, MSG_MODELS_NOT_LOADED)

            if self.store.is_empty():
                return self._finish(FlowStatus.NO_USERS, MSG_NO_USERS)

            frame = self.camera.read()
            if frame is None:
                return self._finish(FlowStatus.NO_CAMERA, MSG_NO_CAMERA)

            self._set_message(MSG_SEARCH_RECOGNIZE)
            detection = self._detect(frame)
            if detection is None:
                return self._finish(FlowStatus.FACE_NOT_FOUND, MSG_FACE_NOT_FOUND)

            match = self._guarded(self.store.find_best_match, detection.descriptor)
            if match is not None and match.distance < self.threshold:
                logger.info(f"Recognized {match.id} (d={match.distance:.3f})")
                message = MSG_RECOGNIZED.format(id=match.id, distance=match.distance_str)
                return self._finish(FlowStatus.RECOGNIZED, message, match=match)

            if match is not None:
                logger.info(f"Not recognized (nearest {match.id}, d={match.distance:.3f})")
            return self._finish(FlowStatus.NOT_RECOGNIZED, MSG_NOT_RECOGNIZED, match=match)
        finally:
            self._flow_lock.release()
