"""Test fixtures: a fake matching backend served in-process and a fake Socket.IO client."""
import asyncio
import inspect
import io

import httpx
import pytest
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response
from PIL import Image
from socketio.exceptions import ConnectionError as SocketConnectionError

from guestmatch.services.capture import CaptureAdapter, FilePickerSource
from guestmatch.services.match_api import MatchApiClient
from guestmatch.services.push_channel import PushChannel


def make_test_image(width: int = 64, height: int = 48) -> bytes:
    """Create a valid JPEG image for testing."""
    img = Image.new("RGB", (width, height), color=(128, 64, 32))
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


# --- Fake matching backend ---

class FakeBackend:
    def __init__(self):
        self.submission: tuple[int, object] = (200, {"matched_photos": []})
        self.poll_script: list[tuple[int, object]] = [(200, {"status": "processing"})]
        self.photos: dict[str, bytes] = {}
        self.uploads: list[dict] = []
        self.poll_count = 0
        self.raw_submission_body: bytes | None = None

    def next_poll(self) -> tuple[int, object]:
        index = min(self.poll_count - 1, len(self.poll_script) - 1)
        return self.poll_script[index]


def build_fake_app(backend: FakeBackend) -> FastAPI:
    app = FastAPI()

    @app.post("/api/face/upload-selfie")
    async def upload_selfie(event_uuid: str = Form(...), file: UploadFile = File(...)):
        data = await file.read()
        backend.uploads.append({
            "event_uuid": event_uuid,
            "filename": file.filename,
            "content_type": file.content_type,
            "size": len(data),
        })
        if backend.raw_submission_body is not None:
            return Response(content=backend.raw_submission_body, media_type="text/plain")
        status, body = backend.submission
        return JSONResponse(status_code=status, content=body)

    @app.get("/api/face/jobs/{job_id}")
    async def job_status(job_id: str):
        backend.poll_count += 1
        status, body = backend.next_poll()
        return JSONResponse(status_code=status, content=body)

    @app.get("/photos/{photo_id}/download")
    async def download_photo(photo_id: str):
        if photo_id not in backend.photos:
            raise HTTPException(status_code=404, detail="Photo not found")
        return Response(content=backend.photos[photo_id], media_type="image/jpeg")

    return app


# --- Fake Socket.IO client ---

class FakeSocketClient:
    """Stands in for socketio.AsyncClient; tests drive server events with fire()."""

    def __init__(self, fail_connect: bool = False):
        self.handlers = {}
        self.connected = False
        self.fail_connect = fail_connect
        self.connect_calls: list[dict] = []
        self.emitted: list[tuple[str, object]] = []
        self.disconnect_calls = 0

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def connect(self, url, headers=None, transports=None, **kwargs):
        self.connect_calls.append({"url": url, "headers": headers, "transports": transports})
        if self.fail_connect:
            raise SocketConnectionError("Connection refused by the server")
        self.connected = True
        await self.fire("connect")

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False
        await self.fire("disconnect", "client disconnect")

    async def emit(self, event, data=None, namespace=None, callback=None):
        self.emitted.append((event, data))

    def start_background_task(self, target, *args, **kwargs):
        return asyncio.ensure_future(target(*args, **kwargs))

    async def fire(self, event, *args):
        handler = self.handlers.get(event)
        if handler is None:
            return
        result = handler(*args)
        if inspect.isawaitable(result):
            await result

    async def bounce(self):
        """Simulate a dropped transport followed by a successful automatic reconnect."""
        self.connected = False
        await self.fire("disconnect", "transport error")
        self.connected = True
        await self.fire("connect")


# --- Fixtures ---

@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def http_client(backend):
    app = build_fake_app(backend)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture()
def api(http_client):
    return MatchApiClient(http_client, face_api_prefix="/api/face")


@pytest.fixture()
def fake_socket():
    return FakeSocketClient()


@pytest.fixture()
def push_channel(fake_socket):
    return PushChannel("http://testserver", client=fake_socket)


@pytest.fixture()
def selfie():
    adapter = CaptureAdapter()
    return adapter.acquire(FilePickerSource(make_test_image(), "selfie.jpg", "image/jpeg"))
