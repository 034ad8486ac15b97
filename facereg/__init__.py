# facereg package
"""
facereg - register a face from the webcam and recognize it later.

Structure:
    facereg/
    ├── core/                     # Core infrastructure
    │   ├── settings.py           # Configuration
    │   ├── camera.py             # Camera management
    │   ├── tflite_helper.py      # TFLite interpreter helper
    │   └── model_factory.py      # Model factories + concurrent loader
    ├── detect/                   # Face detection (tiny SSD)
    ├── landmarks/                # 68-point landmarks + alignment
    ├── recognition/              # 128-d descriptors
    ├── data/                     # In-memory enrollment store
    ├── processing/               # Analysis chain + session flows
    ├── web/                      # Flask page + face API
    └── main.py                   # Main application

Usage:
    from facereg import FaceSession, ModelLoader, create_camera

    session = FaceSession(create_camera(), ModelLoader())
    session.load_models()
    print(session.register().message)
"""

__version__ = "1.0.0"

from .core.settings import settings
from .core.camera import create_camera
from .core.model_factory import ModelLoader
from .data.store import EnrollmentStore
from .processing.session import FaceSession, FlowStatus

__all__ = [
    'settings',
    'create_camera',
    'ModelLoader',
    'EnrollmentStore',
    'FaceSession',
    'FlowStatus',
]
