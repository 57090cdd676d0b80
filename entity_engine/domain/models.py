from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)


class Metric(str, Enum):
    """Counter the backend aggregates per entity."""

    GIVEN = "given"
    RECEIVED = "received"


class Record(BaseModel):
    """Human-facing representation of an entity id.

    Serialized with camelCase keys. The older backend field names
    (``real_name`` / ``profile_image``) are accepted on input.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: str = Field(
        validation_alias=AliasChoices("displayName", "display_name", "real_name"),
        serialization_alias="displayName",
    )
    avatar_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("avatarUrl", "avatar_url", "profile_image"),
        serialization_alias="avatarUrl",
    )

    @field_validator("avatar_url", mode="before")
    @classmethod
    def _blank_avatar_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def synthetic(cls, entity_id: str) -> "Record":
        """Degraded record shown when nothing better is known."""
        return cls(display_name=entity_id, avatar_url=None)

    def to_wire(self) -> Dict[str, Optional[str]]:
        return self.model_dump(by_alias=True)


class PersistedEntry(BaseModel):
    """One entry of the persisted record cache blob."""

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")

    display_name: str = Field(alias="displayName")
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
    written_at_epoch_ms: int = Field(alias="writtenAtEpochMs", ge=0)


PersistedBlob = TypeAdapter(Dict[str, PersistedEntry])


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: Record
    written_at_epoch_ms: int

    def is_fresh(self, now_ms: int, ttl_ms: int) -> bool:
        return now_ms - self.written_at_epoch_ms <= ttl_ms

    @classmethod
    def from_persisted(cls, entry: PersistedEntry) -> "CacheEntry":
        return cls(
            record=Record(display_name=entry.display_name, avatar_url=entry.avatar_url),
            written_at_epoch_ms=entry.written_at_epoch_ms,
        )

    def to_persisted(self) -> Dict[str, object]:
        return {
            "displayName": self.record.display_name,
            "avatarUrl": self.record.avatar_url,
            "writtenAtEpochMs": self.written_at_epoch_ms,
        }


class DateRange(BaseModel):
    """Inclusive calendar range an aggregate is computed over."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date range start must not be after end")
        return self

    def as_params(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


class AggregateQuery(BaseModel):
    entity_ids: List[str]
    metric: Metric
    date_range: DateRange
    concurrency: int = Field(default=5, ge=1)


class RankedCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_id: str
    count: int
    rank: int


class LeaderboardEntry(BaseModel):
    entity_id: str
    count: int
    rank: int
    previous_rank: Optional[int] = None
    rank_change: Optional[int] = None
    display_name: str
    avatar_url: Optional[str] = None


class Leaderboard(BaseModel):
    metric: Metric
    date_range: DateRange
    previous_range: Optional[DateRange] = None
    entries: List[LeaderboardEntry]
    total: int
    partial: bool = False
