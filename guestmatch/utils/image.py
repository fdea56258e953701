import base64
import io

from PIL import Image, UnidentifiedImageError


def build_preview(file_data: bytes, content_type: str) -> str:
    """Renderable data: URL of the exact bytes that will be uploaded."""
    encoded = base64.b64encode(file_data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def probe_dimensions(file_data: bytes) -> tuple[int, int] | None:
    """Return (width, height) if Pillow can read the image header, else None."""
    try:
        with Image.open(io.BytesIO(file_data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return None
