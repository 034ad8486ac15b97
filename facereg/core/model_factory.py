# facereg/core/model_factory.py
"""
Model factory + loader.

The three models (detector, landmarks, recognition) are loaded as
independent requests on a thread pool; the loader waits for all of them
and only then reports ready. A failure is final for the process: status
becomes an error message and nothing is retried.

Usage:
    from facereg.core.model_factory import ModelLoader

    loader = ModelLoader()
    if loader.load_all():
        detection = loader.analyzer.detect_single_face(frame)
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from .settings import settings

logger = logging.getLogger(__name__)

MSG_LOADING = "Loading models..."
MSG_LOADED = "Models loaded. You can register a face."
MSG_LOAD_ERROR = "Error loading models"


def create_detector(model_path=None):
    """TinyFaceDetector configured from settings."""
    from ..detect import TinyFaceDetector

    if model_path is None:
        model_path = settings.model_path('DETECTOR_MODEL')

    logger.info(f"[Detector] Model: {model_path}")
    return TinyFaceDetector(model_path=model_path, options=detection_options())


def create_landmarker(model_path=None):
    """68-point landmark model."""
    from ..landmarks import FaceLandmark68

    if model_path is None:
        model_path = settings.model_path('LANDMARK_MODEL')

    logger.info(f"[Landmarks] Model: {model_path}")
    return FaceLandmark68(model_path=model_path)


def create_recognizer(model_path=None):
    """Descriptor extractor."""
    from ..recognition import FaceRecognizer

    if model_path is None:
        model_path = settings.model_path('RECOGNITION_MODEL')

    logger.info(f"[Recognizer] Model: {model_path}")
    return FaceRecognizer(model_path=model_path, enable_histogram_eq=settings.HISTOGRAM_EQ)


def create_analyzer(detector, landmarker, recognizer):
    from ..processing.analyzer import FaceAnalyzer

    return FaceAnalyzer(detector, landmarker, recognizer, options=detection_options())


def detection_options():
    from ..detect import DetectionOptions

    return DetectionOptions(
        input_size=settings.DETECTION_INPUT_SIZE,
        score_threshold=settings.DETECTION_SCORE_THRESHOLD,
        nms_threshold=settings.DETECTION_NMS_THRESHOLD,
    )


class ModelLoader:
    """
    Loads the three models concurrently and exposes readiness.

    Factories are injectable so the loader can be driven without model files.
    """

    def __init__(
        self,
        detector_factory=create_detector,
        landmark_factory=create_landmarker,
        recognizer_factory=create_recognizer,
        analyzer_factory=create_analyzer,
        embedding_dim=None,
    ):
        """
        Args:
            embedding_dim: descriptor size the enrollment store expects;
                a recognition model with another output size fails the load
        """
        self._factories = {
            'detector': detector_factory,
            'landmarks': landmark_factory,
            'recognizer': recognizer_factory,
        }
        self._analyzer_factory = analyzer_factory
        self.embedding_dim = embedding_dim

        self._lock = threading.Lock()
        self._ready = False
        self._loading = False
        self._status = ""
        self._error = None
        self._analyzer = None

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._ready

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    @property
    def status(self) -> str:
        with self._lock:
            return self._status

    @property
    def error(self):
        with self._lock:
            return self._error

    @property
    def analyzer(self):
        with self._lock:
            return self._analyzer if self._ready else None

    def load_all(self) -> bool:
        """
        Issue the three loads, wait for all, then flip readiness.

        Returns:
            True if every model loaded
        """
        with self._lock:
            if self._ready or self._loading or self._error is not None:
                return self._ready
            self._loading = True
            self._status = MSG_LOADING

        try:
            with ThreadPoolExecutor(max_workers=len(self._factories), thread_name_prefix='model-load') as pool:
                futures = {name: pool.submit(factory) for name, factory in self._factories.items()}
                models = {name: future.result() for name, future in futures.items()}

            analyzer = self._analyzer_factory(
                models['detector'], models['landmarks'], models['recognizer']
            )
            if self.embedding_dim is not None and analyzer.embedding_dim != self.embedding_dim:
                raise ValueError(
                    f"Recognition model outputs {analyzer.embedding_dim}-d descriptors, "
                    f"expected {self.embedding_dim}"
                )
        except Exception as e:
            logger.exception(f"❌ Model loading failed: {e}")
            with self._lock:
                self._loading = False
                self._error = e
                self._status = MSG_LOAD_ERROR
            return False

        with self._lock:
            self._analyzer = analyzer
            self._ready = True
            self._loading = False
            self._status = MSG_LOADED
        logger.info("✅ Models loaded")
        return True
