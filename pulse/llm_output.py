"""
Pydantic models for completion-service output.

Every model response is untrusted: entries are validated one by one and
anything malformed or out of range is dropped instead of failing the batch.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class IndexedEntry(BaseModel):
    index: int

    @field_validator("index", mode="before")
    @classmethod
    def _coerce_index(cls, value: Any) -> Any:
        # Models occasionally return "3" or 3.0 for an index.
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value


class ScoreEntry(IndexedEntry):
    score: int


class TakeEntry(IndexedEntry):
    take: Optional[str] = None

    @field_validator("take", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value or value.lower() in {"null", "none"}:
                return None
        return value


class SentimentEntry(IndexedEntry):
    sentiment: str = "neutral"
    sentiment_score: float = Field(0, allow_inf_nan=False)

    @field_validator("sentiment", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else "neutral"

    @field_validator("sentiment_score", mode="before")
    @classmethod
    def _none_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class BiasEntryOut(IndexedEntry):
    bias: str = "neutral"

    @field_validator("bias", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else "neutral"


class ClusterDraft(BaseModel):
    headline: str
    subheadline: str = ""
    source_indices: List[Any] = []

    @field_validator("headline", "subheadline", mode="before")
    @classmethod
    def _trim(cls, value: Any) -> Any:
        return (value or "").strip() if isinstance(value, str) or value is None else value

    @field_validator("source_indices", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class SummaryPayload(BaseModel):
    summary: Optional[str] = None


def validate_entries(
    payload: Dict[str, Any],
    model: Type[M],
    keys: Sequence[str],
) -> List[M]:
    """Validate the list found under the first present key of `keys`, skipping bad entries."""
    raw: Iterable[Any] = []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            raw = value
            break
    entries: List[M] = []
    dropped = 0
    for entry in raw:
        try:
            entries.append(model.model_validate(entry))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.debug("Dropped %s malformed %s entries", dropped, model.__name__)
    return entries


def in_range(entries: Iterable[M], size: int) -> List[M]:
    return [entry for entry in entries if 0 <= entry.index < size]  # type: ignore[attr-defined]
