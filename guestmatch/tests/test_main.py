"""Tests for the command line front end."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from guestmatch import main
from guestmatch.config import Settings, settings
from guestmatch.models.common import JobState
from guestmatch.models.match import MatchedPhoto, MatchJob
from guestmatch.utils.links import event_token_from_path


def test_event_token_from_guest_link():
    assert event_token_from_path("/guest/4f1c2a") == "4f1c2a"
    assert event_token_from_path("https://photos.example.com/guest/4f1c2a?ref=qr") == "4f1c2a"
    assert event_token_from_path("/events/4f1c2a") is None
    assert event_token_from_path("4f1c2a") is None


def test_parser_requires_a_source():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args(["evt-1"])
    args = main.build_parser().parse_args(["evt-1", "--file", "me.jpg"])
    assert args.file == "me.jpg" and not args.camera


def _fake_orchestrator(job: MatchJob) -> MagicMock:
    orch = MagicMock()
    orch.submit = AsyncMock(return_value=job)
    orch.aclose = AsyncMock()
    orch.download_all_url.return_value = "https://cdn/all.zip"
    return orch


@pytest.mark.asyncio
async def test_run_prints_matches(tmp_path, capsys):
    selfie = tmp_path / "me.jpg"
    selfie.write_bytes(b"\xff\xd8\xff\xe0fake")
    job = MatchJob(
        id="j1", event_token="4f1c2a", state=JobState.complete, progress_percent=100,
        matches=[MatchedPhoto(photo_id="p1", full_url="https://cdn/p1.jpg",
                              thumbnail_url="https://cdn/p1.jpg", confidence=0.91)],
    )
    orch = _fake_orchestrator(job)
    args = main.build_parser().parse_args(["https://x.test/guest/4f1c2a", "--file", str(selfie)])

    with patch("guestmatch.main.dependencies.get_orchestrator", return_value=orch), \
            patch("guestmatch.main.dependencies.close_http_client", new=AsyncMock()):
        code = await main.run(args)

    assert code == 0
    assert orch.submit.await_args.args[1] == "4f1c2a"
    out = capsys.readouterr().out
    assert "Found 1 Match!" in out
    assert "91% high" in out
    assert "https://cdn/all.zip" in out
    orch.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_error_exit_code(tmp_path, capsys):
    selfie = tmp_path / "me.jpg"
    selfie.write_bytes(b"\xff\xd8\xff\xe0fake")
    job = MatchJob(event_token="evt", state=JobState.error, error_kind="timeout",
                   error_message="Matching is taking longer than expected.")
    orch = _fake_orchestrator(job)
    args = main.build_parser().parse_args(["evt", "--file", str(selfie)])

    with patch("guestmatch.main.dependencies.get_orchestrator", return_value=orch), \
            patch("guestmatch.main.dependencies.close_http_client", new=AsyncMock()):
        code = await main.run(args)

    assert code == 1
    assert "taking longer" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_rejects_non_image(tmp_path, capsys):
    doc = tmp_path / "notes.txt"
    doc.write_text("hello")
    args = main.build_parser().parse_args(["evt", "--file", str(doc)])

    with patch("guestmatch.main.dependencies.get_orchestrator") as get_orchestrator:
        code = await main.run(args)

    assert code == 2
    get_orchestrator.assert_not_called()
    assert "image file" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_run_missing_file_exits_cleanly(tmp_path, capsys):
    args = main.build_parser().parse_args(["evt", "--file", str(tmp_path / "gone.jpg")])

    with patch("guestmatch.main.dependencies.get_orchestrator") as get_orchestrator:
        code = await main.run(args)

    assert code == 2
    get_orchestrator.assert_not_called()
    assert "Could not read" in capsys.readouterr().err


def test_main_does_not_save_without_download_dir(tmp_path):
    selfie = tmp_path / "me.jpg"
    selfie.write_bytes(b"\xff\xd8\xff\xe0fake")
    job = MatchJob(
        id="j1", event_token="evt", state=JobState.complete, progress_percent=100,
        matches=[MatchedPhoto(photo_id="p1", full_url="https://cdn/p1.jpg",
                              thumbnail_url="https://cdn/p1.jpg", confidence=0.91)],
    )
    orch = _fake_orchestrator(job)

    with patch.object(settings, "download_dir", Settings.model_fields["download_dir"].default), \
            patch("guestmatch.main.dependencies.get_orchestrator", return_value=orch), \
            patch("guestmatch.main.dependencies.close_http_client", new=AsyncMock()), \
            patch("guestmatch.main.save_all", new=AsyncMock()) as save_all:
        code = main.main(["evt", "--file", str(selfie)])

    assert code == 0
    save_all.assert_not_awaited()
    assert Settings.model_fields["download_dir"].default == ""
