import logging
from dataclasses import dataclass, field
from pathlib import Path

from guestmatch.errors import GuestMatchError
from guestmatch.models.match import MatchedPhoto
from guestmatch.services.match_api import MatchApiClient

logger = logging.getLogger(__name__)


@dataclass
class DownloadReport:
    saved: list[Path] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # photo_id -> reason

    @property
    def ok(self) -> bool:
        return not self.failed


def photo_filename(photo_id: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in photo_id)
    return f"photo-{safe}.jpg"


async def save_photo(api: MatchApiClient, photo: MatchedPhoto, dest_dir: str | Path) -> Path:
    content = await api.download_photo(photo.photo_id)
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    path = dest / photo_filename(photo.photo_id)
    path.write_bytes(content)
    return path


async def save_all(api: MatchApiClient, photos: list[MatchedPhoto], dest_dir: str | Path) -> DownloadReport:
    """Download each photo on its own; one failure does not stop the rest."""
    report = DownloadReport()
    for photo in photos:
        try:
            report.saved.append(await save_photo(api, photo, dest_dir))
        except (GuestMatchError, OSError) as e:
            logger.warning("download: photo %s failed: %s", photo.photo_id, e)
            report.failed[photo.photo_id] = str(e)
    return report
