"""
Camera devices for selfie capture.
CV2Camera opens the webcam at ``settings.camera_index`` (0 is the user-facing
camera on laptops and most phones exposed through V4L2/AVFoundation).
"""
import logging
from abc import ABC, abstractmethod

import cv2

from guestmatch.config import settings
from guestmatch.errors import DeviceUnavailable

logger = logging.getLogger(__name__)


class CameraDevice(ABC):
    @abstractmethod
    def open(self) -> None:
        """Acquire exclusive access to the video stream. Raises DeviceUnavailable."""
        ...

    @abstractmethod
    def capture_bytes(self) -> bytes | None:
        """Capture one frame. Returns JPEG bytes or None on failure."""
        ...

    @abstractmethod
    def release(self) -> None:
        ...


class CV2Camera(CameraDevice):
    def __init__(self, index: int | None = None, jpeg_quality: int = 85):
        self._index = index if index is not None else settings.camera_index
        self._jpeg_quality = jpeg_quality
        self._cap = None

    def open(self) -> None:
        if self._cap is not None and self._cap.isOpened():
            return
        self._cap = cv2.VideoCapture(self._index)
        if not self._cap.isOpened():
            self._cap = None
            logger.warning("camera: failed to open device %d", self._index)
            raise DeviceUnavailable(f"camera device {self._index} could not be opened")

    def capture_bytes(self) -> bytes | None:
        if self._cap is None or not self._cap.isOpened():
            return None
        ret, frame = self._cap.read()
        if not ret or frame is None:
            logger.warning("camera: frame capture failed on device %d", self._index)
            return None
        ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality])
        if not ok:
            return None
        return bytes(buf)

    def release(self) -> None:
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None
