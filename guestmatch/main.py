"""
Guest match command line.

    guestmatch EVENT_TOKEN --file selfie.jpg [--download-dir out/]
    guestmatch https://photos.example.com/guest/<uuid> --camera
"""
import argparse
import asyncio
import logging
import sys

from guestmatch import dependencies
from guestmatch.config import settings
from guestmatch.errors import ValidationError
from guestmatch.models.common import JobState
from guestmatch.models.match import MatchJob
from guestmatch.services.camera import CV2Camera
from guestmatch.services.capture import CameraSource, CaptureAdapter, FilePickerSource
from guestmatch.services.downloads import save_all
from guestmatch.services.orchestrator import MatchOrchestrator
from guestmatch.utils.links import event_token_from_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="guestmatch", description="Find your photos from an event.")
    parser.add_argument("event", help="event token or guest join link")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="path to a selfie image")
    source.add_argument("--camera", action="store_true", help="take a selfie with the webcam")
    parser.add_argument("--download-dir", help="save every matched photo here")
    parser.add_argument("--no-push", action="store_true", help="poll only, skip the live connection")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def print_progress(job: MatchJob) -> None:
    if job.state is JobState.processing:
        step = f" ({job.step})" if job.step else ""
        print(f"  matching... {job.progress_percent:.0f}%{step}")
    elif job.state is JobState.uploading:
        print("  uploading selfie...")


def print_result(job: MatchJob, orchestrator: MatchOrchestrator) -> None:
    if job.state is JobState.error:
        print(f"Error: {job.error_message}")
        return
    if not job.matches:
        print("No matching photos found. Try better lighting and face the camera directly.")
        return
    noun = "Match" if len(job.matches) == 1 else "Matches"
    print(f"Found {len(job.matches)} {noun}!")
    for photo in job.matches:
        print(f"  [{photo.confidence_percent:3d}% {photo.confidence_band}] {photo.photo_id}  {photo.full_url}")
    print(f"Download all: {orchestrator.download_all_url()}")


async def run(args: argparse.Namespace) -> int:
    event_token = event_token_from_path(args.event) or args.event
    adapter = CaptureAdapter()
    try:
        if args.camera:
            payload = adapter.acquire(CameraSource(CV2Camera()))
        else:
            payload = adapter.acquire(FilePickerSource.from_path(args.file))
    except ValidationError as e:
        print(e.user_message, file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Could not read {args.file}: {e.strerror or e}", file=sys.stderr)
        return 2

    orchestrator = dependencies.get_orchestrator(use_push=not args.no_push)
    orchestrator.add_listener(print_progress)
    try:
        job = await orchestrator.submit(payload, event_token)
        print_result(job, orchestrator)
        if job.state is JobState.complete and job.matches and args.download_dir:
            report = await save_all(orchestrator.api, job.matches, args.download_dir)
            print(f"Saved {len(report.saved)} photo(s) to {args.download_dir}")
            for photo_id, reason in report.failed.items():
                print(f"  could not download {photo_id}: {reason}", file=sys.stderr)
    finally:
        await orchestrator.aclose()
        await dependencies.close_http_client()
    return 1 if job.state is JobState.error else 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.download_dir is None and settings.download_dir:
        args.download_dir = settings.download_dir
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
