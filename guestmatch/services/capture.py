import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from guestmatch.config import settings
from guestmatch.errors import DeviceUnavailable, NotAnImage, TooLarge
from guestmatch.models.capture import ImagePayload
from guestmatch.services.camera import CameraDevice
from guestmatch.utils.image import build_preview, probe_dimensions

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


@dataclass(frozen=True)
class FilePickerSource:
    data: bytes
    filename: str
    content_type: str

    @classmethod
    def from_path(cls, path: str | Path) -> "FilePickerSource":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            data=path.read_bytes(),
            filename=path.name,
            content_type=content_type or "application/octet-stream",
        )


@dataclass(frozen=True)
class CameraSource:
    camera: CameraDevice
    filename: str = "selfie.jpg"


class CaptureAdapter:
    """Holds at most one accepted selfie and its preview."""

    def __init__(self, max_size_mib: int | None = None):
        self.max_size_mib = max_size_mib if max_size_mib is not None else settings.max_upload_mib
        self._payload: ImagePayload | None = None

    @property
    def payload(self) -> ImagePayload | None:
        return self._payload

    @property
    def preview(self) -> str | None:
        return self._payload.preview if self._payload else None

    def acquire(self, source: FilePickerSource | CameraSource) -> ImagePayload:
        if isinstance(source, CameraSource):
            data, filename, content_type = self._grab_frame(source), source.filename, "image/jpeg"
        else:
            data, filename, content_type = source.data, source.filename, source.content_type

        if not content_type or not content_type.startswith("image/"):
            raise NotAnImage(f"{filename}: content type {content_type!r} is not an image")
        if len(data) > self.max_size_mib * MIB:
            raise TooLarge(self.max_size_mib, len(data))

        dims = probe_dimensions(data)
        payload = ImagePayload(
            data=data,
            filename=filename,
            content_type=content_type,
            preview=build_preview(data, content_type),
            width=dims[0] if dims else None,
            height=dims[1] if dims else None,
        )
        self._payload = payload
        logger.info("capture: accepted %s (%d bytes)", filename, payload.size_bytes)
        return payload

    def clear(self) -> None:
        self._payload = None

    @staticmethod
    def _grab_frame(source: CameraSource) -> bytes:
        camera = source.camera
        camera.open()
        try:
            frame = camera.capture_bytes()
        finally:
            camera.release()
        if not frame:
            raise DeviceUnavailable("camera returned no frame")
        return frame
