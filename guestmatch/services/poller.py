import asyncio
import logging
from typing import Callable

from guestmatch.config import settings
from guestmatch.errors import GuestMatchError, JobFailedError, PollingTimeoutError
from guestmatch.models.channel import ChannelMessage, ProgressUpdate, TerminalFailure, TerminalResult
from guestmatch.models.common import ChannelSource, PollStatus
from guestmatch.services.match_api import MatchApiClient

logger = logging.getLogger(__name__)

SOURCE = ChannelSource.poll


class JobPoller:
    """Pull channel: checks job status on a fixed interval with a bounded budget."""

    def __init__(
        self,
        api: MatchApiClient,
        interval: float | None = None,
        max_attempts: int | None = None,
    ):
        self.api = api
        self.interval = settings.poll_interval_seconds if interval is None else interval
        self.max_attempts = settings.max_poll_attempts if max_attempts is None else max_attempts

    async def run(self, job_id: str, sink: Callable[[ChannelMessage], None]) -> None:
        """Poll until a terminal status, a failure, or the attempt budget runs out.

        Exactly one terminal message is handed to ``sink`` unless the task is
        cancelled first.
        """
        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.interval)
            try:
                resp = await self.api.poll_job(job_id)
            except GuestMatchError as e:
                logger.warning("poll: job %s attempt %d failed: %s", job_id, attempt, e)
                sink(TerminalFailure(job_id=job_id, error=e, source=SOURCE))
                return

            if resp.status is PollStatus.done:
                logger.info("poll: job %s done after %d attempt(s)", job_id, attempt)
                sink(TerminalResult(job_id=job_id, payload=resp.payload, source=SOURCE))
                return
            if resp.status is PollStatus.failed:
                detail = str(resp.payload.get("error") or resp.payload.get("message") or "")
                sink(TerminalFailure(job_id=job_id, error=JobFailedError(detail), source=SOURCE))
                return
            if resp.progress is not None:
                step = resp.payload.get("step")
                step = str(step) if step is not None else None
                sink(ProgressUpdate(job_id=job_id, percent=resp.progress, step=step, source=SOURCE))

        logger.warning("poll: job %s still pending after %d attempts", job_id, self.max_attempts)
        sink(TerminalFailure(job_id=job_id, error=PollingTimeoutError(self.max_attempts), source=SOURCE))
