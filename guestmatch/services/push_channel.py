"""
Push channel: Socket.IO notifications for matching jobs.

The server emits ``progress {jobId, step, percent}`` while it works and one
``result {jobId, matches, ...}`` when it is done. Subscriptions are re-sent on
every (re)connect so a dropped socket does not lose the job.
"""
import logging
from typing import Callable

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from guestmatch.config import settings
from guestmatch.errors import TransportError
from guestmatch.models.channel import ChannelMessage, ProgressUpdate, TerminalResult
from guestmatch.models.common import ChannelSource

logger = logging.getLogger(__name__)

SOURCE = ChannelSource.push
TRANSPORTS = ["websocket", "polling"]


def make_socket_client() -> socketio.AsyncClient:
    delay = settings.push_reconnect_delay_seconds
    return socketio.AsyncClient(
        reconnection=True,
        reconnection_attempts=settings.push_reconnect_attempts,
        reconnection_delay=delay,
        reconnection_delay_max=delay,
        randomization_factor=0,
    )


class PushChannel:
    def __init__(self, url: str, client: socketio.AsyncClient | None = None, auth_token: str = ""):
        self.url = url
        self._auth_token = auth_token
        self._sio = client if client is not None else make_socket_client()
        self._sinks: dict[str, Callable[[ChannelMessage], None]] = {}
        self._delivered: set[str] = set()

        self._sio.on("connect", self._on_connect)
        self._sio.on("disconnect", self._on_disconnect)
        self._sio.on("progress", self._on_progress)
        self._sio.on("result", self._on_result)

    @property
    def connected(self) -> bool:
        return self._sio.connected

    async def connect(self) -> None:
        if self._sio.connected:
            return
        headers = {"Authorization": f"Bearer {self._auth_token}"} if self._auth_token else {}
        try:
            await self._sio.connect(self.url, headers=headers, transports=TRANSPORTS)
        except SocketConnectionError as e:
            raise TransportError(f"push channel connect to {self.url} failed: {e}") from e

    async def subscribe(self, job_id: str, sink: Callable[[ChannelMessage], None]) -> None:
        self._sinks[job_id] = sink
        self._delivered.discard(job_id)
        if self._sio.connected:
            try:
                await self._sio.emit("subscribe", {"jobId": job_id})
            except SocketIOError as e:
                raise TransportError(f"push subscribe for job {job_id} failed: {e}") from e

    def unsubscribe(self, job_id: str) -> None:
        """Stop forwarding events for ``job_id``. Unknown ids are ignored."""
        self._delivered.discard(job_id)
        if self._sinks.pop(job_id, None) is None:
            return
        if self._sio.connected:
            self._sio.start_background_task(self._emit_unsubscribe, job_id)

    async def close(self) -> None:
        self._sinks.clear()
        self._delivered.clear()
        if self._sio.connected:
            await self._sio.disconnect()

    async def _emit_unsubscribe(self, job_id: str) -> None:
        try:
            await self._sio.emit("unsubscribe", {"jobId": job_id})
        except SocketIOError as e:
            logger.warning("push: unsubscribe for job %s not sent: %s", job_id, e)

    async def _on_connect(self) -> None:
        logger.info("push: connected to %s", self.url)
        for job_id in list(self._sinks):
            await self._sio.emit("subscribe", {"jobId": job_id})

    def _on_disconnect(self, reason=None) -> None:
        logger.warning("push: disconnected from %s (%s)", self.url, reason or "unknown")

    def _on_progress(self, data) -> None:
        job_id = _job_id_of(data)
        sink = self._sinks.get(job_id) if job_id else None
        if sink is None or job_id in self._delivered:
            logger.debug("push: dropping progress for unsubscribed job %s", job_id)
            return
        percent = data.get("percent")
        if isinstance(percent, bool) or not isinstance(percent, (int, float)):
            logger.debug("push: progress for job %s has no numeric percent", job_id)
            return
        step = data.get("step")
        sink(ProgressUpdate(
            job_id=job_id,
            percent=float(percent),
            step=str(step) if step is not None else None,
            source=SOURCE,
        ))

    def _on_result(self, data) -> None:
        job_id = _job_id_of(data)
        sink = self._sinks.get(job_id) if job_id else None
        if sink is None:
            logger.debug("push: dropping result for unsubscribed job %s", job_id)
            return
        if job_id in self._delivered:
            logger.debug("push: duplicate result for job %s ignored", job_id)
            return
        self._delivered.add(job_id)
        sink(TerminalResult(job_id=job_id, payload=data, source=SOURCE))


def _job_id_of(data) -> str | None:
    if not isinstance(data, dict):
        return None
    job_id = data.get("jobId", data.get("job_id"))
    return str(job_id) if job_id is not None else None
