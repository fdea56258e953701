import httpx

from guestmatch.config import settings
from guestmatch.services.match_api import MatchApiClient
from guestmatch.services.orchestrator import MatchOrchestrator
from guestmatch.services.push_channel import PushChannel

_http_client: httpx.AsyncClient | None = None


def auth_headers() -> dict[str, str]:
    if not settings.auth_token:
        return {}
    return {"Authorization": f"Bearer {settings.auth_token}"}


def get_http_client() -> httpx.AsyncClient:
    """Shared client for every backend call; carries the session token when one is configured."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers=auth_headers(),
            timeout=settings.request_timeout_seconds,
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


def make_push_channel() -> PushChannel:
    return PushChannel(settings.socket_url or settings.api_base_url, auth_token=settings.auth_token)


def get_orchestrator(use_push: bool = True) -> MatchOrchestrator:
    api = MatchApiClient(get_http_client())
    return MatchOrchestrator(api, push_factory=make_push_channel if use_push else None)
