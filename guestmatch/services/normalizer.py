"""
Turn whatever the matching backend sends into a list of MatchedPhoto.

The backend has shipped several shapes over time: bare URL strings, records
keyed ``url``/``photo_url``/``fullUrl``, scores as fractions or percentages.
Each entry is parsed as ``str | _PhotoRecord`` so a malformed payload raises
instead of producing a half-filled photo.
"""
import logging
from typing import Annotated, Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, FiniteFloat, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from guestmatch.config import settings
from guestmatch.errors import InvalidEntry, NotAList
from guestmatch.models.match import MatchedPhoto

logger = logging.getLogger(__name__)

MATCH_LIST_KEYS = ("matched_photos", "matches", "photos", "results")
BULK_HANDLE_KEYS = ("download_zip_url", "downloadZipUrl", "zip_url", "zipUrl")

NonEmptyUrl = Annotated[str, StringConstraints(strict=True, strip_whitespace=True, min_length=1)]


class _PhotoRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    photo_id: str | int | None = Field(
        default=None,
        validation_alias=AliasChoices("photoId", "photo_id", "id", "_id"),
    )
    url: NonEmptyUrl = Field(
        validation_alias=AliasChoices(
            "url", "fullUrl", "full_url", "photoUrl", "photo_url", "imageUrl", "image_url", "src"
        ),
    )
    thumbnail_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("thumbUrl", "thumb_url", "thumbnailUrl", "thumbnail_url", "thumbnail"),
    )
    confidence: FiniteFloat | None = Field(
        default=None,
        validation_alias=AliasChoices("confidence", "score", "similarity"),
    )


_entry_adapter = TypeAdapter(Union[NonEmptyUrl, _PhotoRecord])


def _normalize_confidence(score: float | None, default: float) -> float:
    if score is None:
        return default
    if 1.0 < score <= 100.0:
        score = score / 100.0
    return min(max(score, 0.0), 1.0)


def _find_match_list(raw: Any) -> list:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in MATCH_LIST_KEYS:
            if key in raw:
                value = raw[key]
                if isinstance(value, list):
                    return value
                raise NotAList(f"'{key}' is {type(value).__name__}, expected a list")
    raise NotAList(f"no match list in payload of type {type(raw).__name__}")


def normalize(raw: Any, default_confidence: float | None = None) -> list[MatchedPhoto]:
    """Parse a backend payload into MatchedPhoto objects.

    Raises NotAList when there is no list of matches at all (an empty list is a
    valid result) and InvalidEntry when one entry cannot be read.
    """
    default = settings.default_confidence if default_confidence is None else default_confidence
    entries = _find_match_list(raw)

    photos: list[MatchedPhoto] = []
    for index, entry in enumerate(entries):
        try:
            parsed = _entry_adapter.validate_python(entry)
        except PydanticValidationError as e:
            raise InvalidEntry(index, f"{e.error_count()} validation error(s)") from e

        if isinstance(parsed, str):
            photos.append(
                MatchedPhoto(
                    photo_id=f"match-{index}",
                    full_url=parsed,
                    thumbnail_url=parsed,
                    confidence=default,
                )
            )
            continue

        photo_id = str(parsed.photo_id) if parsed.photo_id not in (None, "") else f"match-{index}"
        photos.append(
            MatchedPhoto(
                photo_id=photo_id,
                full_url=parsed.url,
                thumbnail_url=parsed.thumbnail_url or parsed.url,
                confidence=_normalize_confidence(parsed.confidence, default),
            )
        )
    return photos


def extract_bulk_download_handle(raw: Any) -> str | None:
    if not isinstance(raw, dict):
        return None
    for key in BULK_HANDLE_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def describe_shape(raw: Any) -> str:
    """Short description of a payload for log lines (never logs URLs)."""
    if isinstance(raw, dict):
        return "object with keys " + ", ".join(sorted(str(k) for k in raw))
    if isinstance(raw, list):
        return f"list of {len(raw)}"
    return type(raw).__name__


def log_normalization_failure(raw: Any, error: Exception) -> None:
    logger.warning("normalizer: rejected payload (%s): %s", describe_shape(raw), error)
