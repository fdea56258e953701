from urllib.parse import urlparse


def event_token_from_path(path_or_url: str) -> str | None:
    """Read the event token from a guest join link (``/guest/<uuid>``)."""
    parts = [p for p in urlparse(path_or_url).path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "guest":
        return parts[1]
    return None
