from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, List, Literal, Optional, Tuple

from kingdomquest.core.errors import ValidationError
from kingdomquest.core.logging import log_event
from kingdomquest.core.metrics import streak_updates_total
from kingdomquest.features.streaks.store import StreakStore
from kingdomquest.models.streak import PrayerDay, StreakRecord, StreakSummary

StreakOutcome = Literal["created", "unchanged", "incremented", "reset"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StreakService:
    """Day-granular prayer streak state machine over an injected store."""

    def __init__(self, store: StreakStore, clock: Callable[[], datetime] = utc_now, history_limit: int = 30):
        self._store = store
        self._clock = clock
        self._history_limit = history_limit

    def record_prayer_event(self, user_id: str, now: Optional[datetime] = None) -> StreakRecord:
        """
        Apply one prayer event and return the resulting record.

        Same-day events leave the streak untouched; the next day extends it;
        any longer gap starts a new run and counts one missed streak.
        """
        user_id = self._require_user_id(user_id)
        today = self._normalize_day(self._clock() if now is None else now)

        existing = self._store.load_streak(user_id)
        record, outcome = self.next_state(existing, user_id=user_id, today=today)
        if outcome != "unchanged":
            self._store.save_streak(record)

        # Day count follows a successful save
        self._store.log_prayer(user_id, today)

        streak_updates_total.inc(labels={"outcome": outcome})
        log_event(
            "info",
            "streak.updated",
            user_id=user_id,
            event_type=f"streak.{outcome}",
            extra={
                "outcome": outcome,
                "current_streak": record.current_streak,
                "longest_streak": record.longest_streak,
            },
        )
        return record

    @staticmethod
    def next_state(
        existing: Optional[StreakRecord], *, user_id: str, today: date
    ) -> Tuple[StreakRecord, StreakOutcome]:
        """Pure transition: (stored record, event day) -> (new record, outcome)."""
        if existing is None:
            return (
                StreakRecord(
                    user_id=user_id,
                    current_streak=1,
                    longest_streak=1,
                    last_prayer_date=today,
                    streak_start=today,
                    missed_days=0,
                ),
                "created",
            )

        gap = (today - existing.last_prayer_date).days
        if gap <= 0:
            if gap < 0:
                log_event(
                    "warning",
                    "streak.event_before_last_prayer",
                    user_id=user_id,
                    extra={"event_day": today.isoformat(), "last_prayer_date": existing.last_prayer_date.isoformat()},
                )
            return existing, "unchanged"

        if gap == 1:
            current = existing.current_streak + 1
            return (
                existing.model_copy(
                    update={
                        "current_streak": current,
                        "longest_streak": max(existing.longest_streak, current),
                        "last_prayer_date": today,
                    }
                ),
                "incremented",
            )

        # longest_streak is a high-water mark and is left alone
        return (
            existing.model_copy(
                update={
                    "current_streak": 1,
                    "last_prayer_date": today,
                    "streak_start": today,
                    "missed_days": existing.missed_days + 1,
                }
            ),
            "reset",
        )

    def get_streak(self, user_id: str) -> StreakSummary:
        user_id = self._require_user_id(user_id)
        record = self._store.load_streak(user_id)
        if record is None:
            return StreakSummary.empty(user_id)
        return StreakSummary.from_record(record)

    def prayer_history(self, user_id: str, limit: Optional[int] = None) -> List[PrayerDay]:
        user_id = self._require_user_id(user_id)
        size = self._history_limit if limit is None else limit
        if size < 1:
            raise ValidationError("limit must be a positive integer")
        return self._store.list_prayer_days(user_id, size)

    # Internal helpers -------------------------------------------------
    @staticmethod
    def _require_user_id(user_id) -> str:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("User ID is required")
        return user_id.strip()

    @staticmethod
    def _normalize_day(occurred_at) -> date:
        if not isinstance(occurred_at, datetime):
            raise ValidationError("Prayer timestamp must be a datetime")
        aware = occurred_at if occurred_at.tzinfo else occurred_at.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).date()


_service_instance: Optional[StreakService] = None


def get_streak_service() -> StreakService:
    """
    FastAPI dependency provider for the streak service.

    Built lazily on first use; tests override it through app.dependency_overrides.
    """
    global _service_instance
    if _service_instance is None:
        from kingdomquest.core.config import settings
        from kingdomquest.features.streaks.store import get_streak_store

        _service_instance = StreakService(
            get_streak_store(),
            history_limit=settings.STREAK_HISTORY_LIMIT,
        )
    return _service_instance


def reset_streak_service() -> None:
    """FOR TESTING ONLY - forces re-initialization on next use."""
    global _service_instance
    _service_instance = None
