# facereg/core/settings.py
"""
Configuration for the face registration service.

Defaults live in the dataclass below, `config/config.json` overrides them,
and command-line flags (see main.py) override both.
"""
import os
import json
import platform
from dataclasses import dataclass, field


# === PLATFORM DETECTION ===
IS_PI = platform.system() == "Linux" and os.path.exists("/proc/device-tree/model")

# === PATHS ===
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CONFIG_PATH = os.path.join(BASE_DIR, 'config', 'config.json')


def _load_json_config(path: str) -> dict:
    """Load config from a JSON file, {} if missing or invalid."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class Settings:
    """Runtime configuration of the service."""

    # === PLATFORM (read-only) ===
    IS_PI: bool = field(default_factory=lambda: IS_PI)
    BASE_DIR: str = field(default_factory=lambda: BASE_DIR)

    # === MODELS ===
    MODELS_DIR: str = "models"
    DETECTOR_MODEL: str = "tiny_face_detector/model.tflite"
    LANDMARK_MODEL: str = "face_landmark_68/model.tflite"
    RECOGNITION_MODEL: str = "face_recognition/model.tflite"

    # === DETECTION ===
    DETECTION_INPUT_SIZE: int = 128
    DETECTION_SCORE_THRESHOLD: float = 0.3
    DETECTION_NMS_THRESHOLD: float = 0.3

    # === RECOGNITION ===
    RECOGNITION_THRESHOLD: float = 0.6   # match if distance < threshold
    EMBEDDING_DIM: int = 128
    HISTOGRAM_EQ: bool = False           # equalize luminance before the descriptor model
    USER_ID_PREFIX: str = "user"

    # === WEB SERVER ===
    WEB_HOST: str = "0.0.0.0"
    WEB_PORT: int = 5000
    JPEG_QUALITY: int = 80
    STATE_POLL_MS: int = 1000

    # === CAMERA ===
    CAMERA_ID: int = 0
    CAMERA_WIDTH: int = 320
    CAMERA_HEIGHT: int = 240
    MIRROR_PREVIEW: bool = True          # front camera

    # === PERFORMANCE ===
    TFLITE_NUM_THREADS: int = 4

    # === LOGGING ===
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    config_path: str = field(default=CONFIG_PATH, repr=False)

    def __post_init__(self):
        self._load_from_json()
        self._compute_defaults()

    def _load_from_json(self):
        """Apply values from config.json over the defaults."""
        config = _load_json_config(self.config_path)
        for key, value in config.items():
            if key.isupper() and hasattr(self, key) and value is not None:
                setattr(self, key, value)

    def _compute_defaults(self):
        if self.IS_PI:
            self.TFLITE_NUM_THREADS = min(self.TFLITE_NUM_THREADS, 2)

    def model_path(self, name: str) -> str:
        """Resolve one of DETECTOR_MODEL / LANDMARK_MODEL / RECOGNITION_MODEL."""
        relative = getattr(self, name)
        if os.path.isabs(relative):
            return relative
        models_dir = self.MODELS_DIR
        if not os.path.isabs(models_dir):
            models_dir = os.path.join(self.BASE_DIR, models_dir)
        return os.path.join(models_dir, relative)

    # === PROPERTY ALIASES ===
    @property
    def recognition_threshold(self) -> float:
        return self.RECOGNITION_THRESHOLD

    @property
    def detection_input_size(self) -> int:
        return self.DETECTION_INPUT_SIZE

    @property
    def detection_score_threshold(self) -> float:
        return self.DETECTION_SCORE_THRESHOLD

    @property
    def embedding_dim(self) -> int:
        return self.EMBEDDING_DIM

    @property
    def tflite_num_threads(self) -> int:
        return self.TFLITE_NUM_THREADS

    @property
    def camera_width(self) -> int:
        return self.CAMERA_WIDTH

    @property
    def camera_height(self) -> int:
        return self.CAMERA_HEIGHT

    @property
    def web_port(self) -> int:
        return self.WEB_PORT


# === SINGLETON ===
settings = Settings()
