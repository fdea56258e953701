from pydantic import BaseModel, ConfigDict, Field

from guestmatch.models.common import JobState


class MatchedPhoto(BaseModel):
    model_config = ConfigDict(frozen=True)

    photo_id: str
    full_url: str
    thumbnail_url: str
    confidence: float = Field(ge=0.0, le=1.0)

    @property
    def confidence_percent(self) -> int:
        return round(self.confidence * 100)

    @property
    def confidence_band(self) -> str:
        if self.confidence >= 0.8:
            return "high"
        if self.confidence >= 0.6:
            return "medium"
        return "low"

    def share_url(self, origin: str) -> str:
        return f"{origin.rstrip('/')}/photo/{self.photo_id}"


class MatchJob(BaseModel):
    id: str | None = None
    event_token: str | None = None
    state: JobState = JobState.idle
    progress_percent: float = 0.0
    step: str | None = None
    matches: list[MatchedPhoto] = []
    bulk_download_handle: str | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.complete, JobState.error)
