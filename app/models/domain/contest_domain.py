"""
Canonical contest model shared by every platform adapter and the contest store.

A contest is identified by (platform, external_id). Its lifecycle stage
(upcoming/running/finished) is never stored; it is derived from the start and
end times against the current clock.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


class Platform(str, Enum):
    CODEFORCES = "codeforces"
    LEETCODE = "leetcode"
    CODECHEF = "codechef"
    ATCODER = "atcoder"


class DifficultyLevel(str, Enum):
    BEGINNER = "BEGINNER"
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    EXPERT = "EXPERT"


class ContestStage(str, Enum):
    UPCOMING = "upcoming"
    RUNNING = "running"
    FINISHED = "finished"


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to an aware UTC value (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Contest(BaseModel):
    """Platform-independent contest record."""

    model_config = ConfigDict(use_enum_values=False)

    id: str | None = None  # store-assigned
    platform: Platform
    external_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime

    website_url: str | None = None
    registration_url: str | None = None
    difficulty: DifficultyLevel | None = None
    description: str | None = None

    contest_type: str | None = None
    participant_count: int | None = None
    platform_metadata: dict[str, Any] = Field(default_factory=dict)
    last_synced_at: datetime | None = None

    @field_validator("start_time", "end_time", "last_synced_at")
    @classmethod
    def _normalize_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_time_order(self) -> "Contest":
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be earlier than start_time")
        return self

    @computed_field
    @property
    def duration_minutes(self) -> int:
        return round((self.end_time - self.start_time).total_seconds() / 60)

    @property
    def key(self) -> tuple[Platform, str]:
        """Identity tuple used for upserts."""
        return (self.platform, self.external_id)

    def stage(self, now: datetime) -> ContestStage:
        now = ensure_utc(now)
        if now < self.start_time:
            return ContestStage.UPCOMING
        if now <= self.end_time:
            return ContestStage.RUNNING
        return ContestStage.FINISHED

    def is_upcoming(self, now: datetime) -> bool:
        return self.stage(now) is ContestStage.UPCOMING

    def is_running(self, now: datetime) -> bool:
        return self.stage(now) is ContestStage.RUNNING

    def hours_until_start(self, now: datetime) -> int:
        return round((self.start_time - ensure_utc(now)).total_seconds() / 3600)
