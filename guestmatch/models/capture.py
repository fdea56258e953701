from dataclasses import dataclass


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    filename: str
    content_type: str
    preview: str  # data: URL of the same bytes
    width: int | None = None
    height: int | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)
