import logging
from dataclasses import dataclass
from typing import Any

import httpx

from guestmatch.config import settings
from guestmatch.errors import NormalizationError, TransportError
from guestmatch.models.capture import ImagePayload
from guestmatch.models.channel import PollResponse
from guestmatch.models.common import PollStatus

logger = logging.getLogger(__name__)

_POLL_STATUSES = {
    "processing": PollStatus.pending,
    "pending": PollStatus.pending,
    "queued": PollStatus.pending,
    "done": PollStatus.done,
    "complete": PollStatus.done,
    "completed": PollStatus.done,
    "failed": PollStatus.failed,
    "error": PollStatus.failed,
}
_PROGRESS_KEYS = ("progress", "percent", "progressPercent")


@dataclass(frozen=True)
class SubmissionResult:
    status_code: int
    body: Any = None

    @property
    def no_match(self) -> bool:
        return self.status_code == 404


def _decode_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise NormalizationError(f"{resp.request.url.path} returned a non-JSON body") from e


class MatchApiClient:
    """Thin async wrapper over the face-matching endpoints."""

    def __init__(self, client: httpx.AsyncClient, face_api_prefix: str | None = None):
        self._client = client
        self._prefix = (face_api_prefix if face_api_prefix is not None else settings.face_api_prefix).rstrip("/")

    async def submit_selfie(self, payload: ImagePayload, event_token: str) -> SubmissionResult:
        try:
            resp = await self._client.post(
                f"{self._prefix}/upload-selfie",
                data={"event_uuid": event_token},
                files={"file": (payload.filename or "selfie.jpg", payload.data, payload.content_type)},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"selfie upload failed: {e}") from e

        if resp.status_code == 404:
            return SubmissionResult(status_code=404)
        if resp.status_code != 200:
            raise TransportError(f"selfie upload returned HTTP {resp.status_code}", status_code=resp.status_code)
        return SubmissionResult(status_code=200, body=_decode_json(resp))

    async def poll_job(self, job_id: str) -> PollResponse:
        try:
            resp = await self._client.get(f"{self._prefix}/jobs/{job_id}")
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"job status returned HTTP {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"job status request failed: {e}") from e

        body = _decode_json(resp)
        if not isinstance(body, dict):
            raise NormalizationError(f"job status for {job_id} is not an object")

        raw_status = str(body.get("status", "")).lower()
        status = _POLL_STATUSES.get(raw_status)
        if status is None:
            logger.warning("poll: unknown status %r for job %s, treating as pending", raw_status, job_id)
            status = PollStatus.pending

        progress = None
        for key in _PROGRESS_KEYS:
            if isinstance(body.get(key), (int, float)):
                progress = float(body[key])
                break
        return PollResponse(status=status, payload=body, progress=progress)

    async def download_photo(self, photo_id: str) -> bytes:
        try:
            resp = await self._client.get(f"/photos/{photo_id}/download")
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"download of {photo_id} returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"download of {photo_id} failed: {e}") from e
        return resp.content

    def bulk_download_url(self, urls: list[str]) -> str:
        """Server-side zip of the given photo URLs, for results without a zip handle."""
        request = self._client.build_request(
            "GET", f"{self._prefix}/download-matched-photos", params={"urls": ",".join(urls)}
        )
        return str(request.url)
