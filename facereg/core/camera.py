# facereg/core/camera.py
"""
Camera Manager module.

Opens the capture device with retry logic and serves frames to both the
preview stream and the registration/recognition flows.

Usage:
    from facereg.core.camera import CameraManager

    camera = CameraManager()
    if camera.open():
        frame = camera.read()
        jpeg = camera.read_jpeg()
        camera.release()
"""
import cv2
import time
import logging
import threading
from typing import Optional, Tuple
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    """Camera configuration."""
    width: int = 320
    height: int = 240
    fps: int = 30
    buffer_size: int = 1
    warmup_frames: int = 5
    max_retries: int = 3
    retry_delay: float = 2.0
    mirror: bool = True        # front camera: show the user a mirror image
    jpeg_quality: int = 80


class CameraManager:
    """
    Owns a single cv2.VideoCapture. Thread-safe: the preview stream and the
    flows read from the same device, so reads are serialized by a lock.
    """

    def __init__(self, device_id: int = 0, config: Optional[CameraConfig] = None):
        self.device_id = device_id
        self.config = config or CameraConfig()

        self._cap: Optional[cv2.VideoCapture] = None
        self._is_open = False
        self._lock = threading.Lock()

    def open(self) -> bool:
        """
        Open the camera with retry logic.

        Returns:
            True on success
        """
        for attempt in range(self.config.max_retries):
            try:
                self._cap = cv2.VideoCapture(self.device_id)

                if self._cap.isOpened():
                    self._configure_camera()
                    self._warmup()
                    self._is_open = True

                    actual_w, actual_h = self.get_resolution()
                    logger.info(f"📹 Camera opened: {actual_w}x{actual_h}")
                    return True

            except cv2.error as e:
                logger.warning(f"Camera error: {e}")

            if attempt < self.config.max_retries - 1:
                logger.warning(
                    f"⚠️ Camera not ready, retrying "
                    f"({attempt + 1}/{self.config.max_retries})..."
                )
                time.sleep(self.config.retry_delay)

        logger.error("❌ Could not open camera!")
        return False

    def _configure_camera(self):
        if self._cap is None:
            return

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)
        self._cap.set(cv2.CAP_PROP_FPS, self.config.fps)

    def _warmup(self):
        """Drop the first frames so exposure settles."""
        if self._cap is None:
            return

        for _ in range(self.config.warmup_frames):
            self._cap.grab()

    def read(self) -> Optional[np.ndarray]:
        """
        Sample the current frame.

        Returns:
            BGR frame (numpy array) or None if the camera is unavailable
        """
        with self._lock:
            if not self._is_open or self._cap is None:
                return None
            ret, frame = self._cap.read()

        if not ret or frame is None:
            logger.warning("Could not read frame!")
            return None

        if (frame.shape[1], frame.shape[0]) != (self.config.width, self.config.height):
            frame = cv2.resize(frame, (self.config.width, self.config.height))
        if self.config.mirror:
            frame = cv2.flip(frame, 1)
        return frame

    def read_jpeg(self) -> Optional[bytes]:
        """Sample a frame and encode it as JPEG for the preview stream."""
        frame = self.read()
        if frame is None:
            return None
        return encode_jpeg(frame, self.config.jpeg_quality)

    def release(self):
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
            self._is_open = False
        logger.info("📹 Camera released")

    def is_opened(self) -> bool:
        return self._is_open and self._cap is not None and self._cap.isOpened()

    def get_resolution(self) -> Tuple[int, int]:
        """Actual resolution reported by the device."""
        if self._cap is None:
            return (0, 0)
        return (
            int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        )

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def encode_jpeg(frame: np.ndarray, quality: int = 80) -> Optional[bytes]:
    ok, buf = cv2.imencode('.jpg', frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        return None
    return buf.tobytes()


def create_camera(
    device_id: int = 0,
    width: int = 320,
    height: int = 240,
    mirror: bool = True,
    jpeg_quality: int = 80,
) -> CameraManager:
    """
    Factory for a camera with the preview configuration.

    Returns:
        CameraManager instance (not opened yet)
    """
    config = CameraConfig(
        width=width,
        height=height,
        mirror=mirror,
        jpeg_quality=jpeg_quality,
    )
    return CameraManager(device_id=device_id, config=config)
