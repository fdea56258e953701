from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:5000"
    face_api_prefix: str = "/api/face"
    socket_url: str = ""
    auth_token: str = ""
    request_timeout_seconds: float = 30.0
    max_upload_mib: int = 10
    camera_index: int = 0
    poll_interval_seconds: float = 2.0
    max_poll_attempts: int = 22
    push_reconnect_attempts: int = 5
    push_reconnect_delay_seconds: float = 1.0
    default_confidence: float = 0.95
    download_dir: str = ""

    model_config = {"env_prefix": "GUESTMATCH_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
