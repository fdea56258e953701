"""Tests for per-photo downloads."""
import pytest

from guestmatch.models.match import MatchedPhoto
from guestmatch.services.downloads import photo_filename, save_all, save_photo


def _photo(photo_id: str) -> MatchedPhoto:
    return MatchedPhoto(photo_id=photo_id, full_url=f"https://cdn/{photo_id}.jpg",
                        thumbnail_url=f"https://cdn/{photo_id}.jpg", confidence=0.9)


def test_photo_filename_is_safe():
    assert photo_filename("p1") == "photo-p1.jpg"
    assert photo_filename("match-0") == "photo-match-0.jpg"
    assert photo_filename("../etc/passwd") == "photo-___etc_passwd.jpg"


@pytest.mark.asyncio
async def test_save_photo_writes_file(api, backend, tmp_path):
    backend.photos["p1"] = b"jpeg-bytes"
    path = await save_photo(api, _photo("p1"), tmp_path / "out")
    assert path == tmp_path / "out" / "photo-p1.jpg"
    assert path.read_bytes() == b"jpeg-bytes"


@pytest.mark.asyncio
async def test_save_all_reports_partial_failures(api, backend, tmp_path):
    backend.photos["p1"] = b"one"
    backend.photos["p3"] = b"three"

    report = await save_all(api, [_photo("p1"), _photo("p2"), _photo("p3")], tmp_path)

    assert [p.name for p in report.saved] == ["photo-p1.jpg", "photo-p3.jpg"]
    assert list(report.failed) == ["p2"]
    assert not report.ok


@pytest.mark.asyncio
async def test_save_all_empty(api, tmp_path):
    report = await save_all(api, [], tmp_path)
    assert report.ok
    assert report.saved == []
