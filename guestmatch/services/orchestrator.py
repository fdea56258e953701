r"""
Match orchestrator: owns the selfie-matching job and its state machine.

    idle -> uploading -> processing -> complete | error
                      \-------------> complete | error   (inline result / 404)
    complete | error -> idle                               (reset)

Once a job id is known, the push channel and the poller both feed proposals
into one asyncio.Queue. This class is the only consumer and the only writer of
the job, so "first terminal result wins" is a check on the job state.
"""
import asyncio
import logging
import uuid
from typing import Callable

from guestmatch.config import settings
from guestmatch.errors import GuestMatchError, NormalizationError, TransportError
from guestmatch.models.capture import ImagePayload
from guestmatch.models.channel import ChannelMessage, ProgressUpdate, TerminalFailure, TerminalResult
from guestmatch.models.common import ChannelSource, JobState
from guestmatch.models.match import MatchedPhoto, MatchJob
from guestmatch.services.match_api import MatchApiClient, SubmissionResult
from guestmatch.services.normalizer import (
    MATCH_LIST_KEYS,
    extract_bulk_download_handle,
    log_normalization_failure,
    normalize,
)
from guestmatch.services.poller import JobPoller
from guestmatch.services.push_channel import PushChannel

logger = logging.getLogger(__name__)

_ALLOWED = {
    JobState.idle: {JobState.uploading},
    JobState.uploading: {JobState.processing, JobState.complete, JobState.error},
    JobState.processing: {JobState.complete, JobState.error},
    JobState.complete: set(),
    JobState.error: set(),
}

# Wakes the consumer loop when its job is abandoned.
_ABANDONED = object()


def _job_id_of(body) -> str | None:
    if not isinstance(body, dict):
        return None
    job_id = body.get("job_id", body.get("jobId"))
    return str(job_id) if job_id not in (None, "") else None


def _has_inline_matches(body) -> bool:
    if not isinstance(body, dict):
        return False
    for key in MATCH_LIST_KEYS:
        if isinstance(body.get(key), list) and body[key]:
            return True
    return False


class MatchOrchestrator:
    def __init__(
        self,
        api: MatchApiClient,
        push_factory: Callable[[], PushChannel] | None = None,
        poller: JobPoller | None = None,
        default_confidence: float | None = None,
    ):
        self.api = api
        self._push_factory = push_factory
        self._push: PushChannel | None = None
        self._poller = poller if poller is not None else JobPoller(api)
        self._default_confidence = (
            settings.default_confidence if default_confidence is None else default_confidence
        )
        self._job = MatchJob()
        self._queue: asyncio.Queue | None = None
        self._poll_task: asyncio.Task | None = None
        self._listeners: list[Callable[[MatchJob], None]] = []

    # --- observation ---

    @property
    def job(self) -> MatchJob:
        return self._job.model_copy(deep=True)

    @property
    def state(self) -> JobState:
        return self._job.state

    def add_listener(self, callback: Callable[[MatchJob], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[MatchJob], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        snapshot = self.job
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("orchestrator: listener %r failed", callback)

    # --- commands ---

    async def submit(self, payload: ImagePayload, event_token: str) -> MatchJob:
        """Upload a selfie and follow the job until it is terminal or abandoned."""
        if not event_token:
            raise ValueError("event_token is required")

        self.reset()
        job = MatchJob(event_token=event_token)
        self._job = job
        self._transition(job, JobState.uploading)

        try:
            result = await self.api.submit_selfie(payload, event_token)
        except GuestMatchError as e:
            if self._job is job:
                self._fail(job, e)
            return job.model_copy(deep=True)

        if self._job is not job:
            logger.info("orchestrator: submission for %s finished after the job was abandoned", event_token)
            return job.model_copy(deep=True)

        await self._handle_submission(job, result)
        return job.model_copy(deep=True)

    def reset(self) -> None:
        """Drop the current job and go back to idle. Safe to call at any time, any number of times."""
        self._stop_observers()
        if self._job.state is JobState.idle and self._job.id is None:
            return
        logger.info("orchestrator: reset from %s (job %s)", self._job.state.value, self._job.id)
        self._job = MatchJob()
        self._notify()

    def propose(self, message: ChannelMessage) -> None:
        """Entry point for channel callbacks. Never mutates the job directly."""
        if self._queue is None:
            logger.debug("orchestrator: no job under observation, dropping %s", type(message).__name__)
            return
        self._queue.put_nowait(message)

    def download_all_url(self) -> str | None:
        job = self._job
        if job.state is not JobState.complete or not job.matches:
            return None
        if job.bulk_download_handle:
            return job.bulk_download_handle
        return self.api.bulk_download_url([m.full_url for m in job.matches])

    async def aclose(self) -> None:
        self.reset()
        if self._push is not None:
            await self._push.close()
            self._push = None

    # --- submission ---

    async def _handle_submission(self, job: MatchJob, result: SubmissionResult) -> None:
        if result.no_match:
            job.id = uuid.uuid4().hex
            self._complete(job, [], None)
            return

        body = result.body
        job_id = _job_id_of(body)
        if job_id is None or _has_inline_matches(body):
            # Single round trip: the response itself is the terminal payload.
            job.id = job_id or uuid.uuid4().hex
            self._resolve_terminal(job, body)
            return

        job.id = job_id
        self._transition(job, JobState.processing)
        await self._observe(job)

    # --- processing ---

    async def _observe(self, job: MatchJob) -> None:
        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue
        self._poll_task = asyncio.create_task(self._poller.run(job.id, self.propose))
        self._poll_task.add_done_callback(self._on_poll_done)
        try:
            await self._start_push(job)
            while self._job is job and job.state is JobState.processing:
                message = await queue.get()
                if message is _ABANDONED:
                    break
                self._apply(job, message)
        finally:
            if self._job is job:
                self._stop_observers()

    async def _start_push(self, job: MatchJob) -> None:
        if self._push_factory is None:
            return
        if self._push is None:
            self._push = self._push_factory()
        try:
            await self._push.connect()
            if self._job is job and job.state is JobState.processing:
                await self._push.subscribe(job.id, self.propose)
        except TransportError as e:
            logger.warning("orchestrator: push channel unavailable, polling only: %s", e)

    def _on_poll_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.error("orchestrator: poller crashed", exc_info=exc)
        job_id = self._job.id
        if job_id is not None:
            self.propose(TerminalFailure(job_id=job_id, error=GuestMatchError(str(exc)), source=ChannelSource.poll))

    def _apply(self, job: MatchJob, message: ChannelMessage) -> None:
        if message.job_id != job.id:
            logger.debug("orchestrator: dropping %s for stale job %s", type(message).__name__, message.job_id)
            return
        if job.state is not JobState.processing:
            logger.debug(
                "orchestrator: job %s already %s, ignoring %s from %s",
                job.id, job.state.value, type(message).__name__, message.source.value,
            )
            return

        if isinstance(message, ProgressUpdate):
            percent = min(max(message.percent, 0.0), 100.0)
            if percent > job.progress_percent or (message.step and message.step != job.step):
                job.progress_percent = max(job.progress_percent, percent)
                job.step = message.step or job.step
                self._notify()
        elif isinstance(message, TerminalResult):
            logger.info("orchestrator: job %s result via %s", job.id, message.source.value)
            self._resolve_terminal(job, message.payload)
        elif isinstance(message, TerminalFailure):
            self._fail(job, message.error)

    def _stop_observers(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self._push is not None and self._job.id is not None:
            self._push.unsubscribe(self._job.id)
        if self._queue is not None:
            self._queue.put_nowait(_ABANDONED)
            self._queue = None

    # --- transitions ---

    def _resolve_terminal(self, job: MatchJob, payload) -> None:
        try:
            matches = normalize(payload, self._default_confidence)
        except NormalizationError as e:
            log_normalization_failure(payload, e)
            self._fail(job, e)
            return
        self._complete(job, matches, extract_bulk_download_handle(payload))

    def _complete(self, job: MatchJob, matches: list[MatchedPhoto], bulk_handle: str | None) -> None:
        job.matches = list(matches)
        job.bulk_download_handle = bulk_handle
        job.progress_percent = 100.0
        self._transition(job, JobState.complete)

    def _fail(self, job: MatchJob, error: GuestMatchError) -> None:
        logger.warning("orchestrator: job %s failed (%s): %s", job.id, error.kind, error)
        job.error_kind = error.kind
        job.error_message = error.user_message
        self._transition(job, JobState.error)

    def _transition(self, job: MatchJob, state: JobState) -> None:
        if state not in _ALLOWED[job.state]:
            raise RuntimeError(f"illegal job transition {job.state.value} -> {state.value}")
        logger.info("orchestrator: job %s %s -> %s", job.id, job.state.value, state.value)
        job.state = state
        if self._job is job:
            self._notify()
