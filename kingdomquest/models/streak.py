"""
kingdomquest/models/streak.py

Prayer streak domain models. Day-level, UTC only, no direct DB concerns.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StreakRecord(BaseModel):
    """
    A user's daily prayer streak.

    Records are immutable; every transition returns a copy.
    Constraint: longest_streak >= current_streak >= 1.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    current_streak: int = Field(..., ge=1)
    longest_streak: int = Field(..., ge=1)
    last_prayer_date: date
    streak_start: date
    missed_days: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _longest_covers_current(self) -> "StreakRecord":
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak must be >= current_streak")
        return self


class StreakSummary(BaseModel):
    """Read model for a user's streak; zeroed when the user never prayed."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_prayer_date: Optional[date] = None
    streak_start: Optional[date] = None
    missed_days: int = 0

    @classmethod
    def empty(cls, user_id: str) -> "StreakSummary":
        return cls(user_id=user_id)

    @classmethod
    def from_record(cls, record: StreakRecord) -> "StreakSummary":
        return cls(**record.model_dump())


class PrayerDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    day: date
    prayers_count: int = Field(..., ge=1)
