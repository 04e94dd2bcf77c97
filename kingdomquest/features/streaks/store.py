"""
kingdomquest/features/streaks/store.py

Streak persistence contract plus the in-memory implementation.
The SQL implementation lives in store_sql.py.
"""

from datetime import date
from typing import Dict, List, Optional, Protocol, Tuple
import logging

from kingdomquest.models.streak import PrayerDay, StreakRecord

logger = logging.getLogger("kingdomquest")


class StreakStore(Protocol):
    """
    Persistence collaborator for streaks.

    Implementations raise UpstreamFailureError when storage is unavailable.
    Atomicity of load-modify-save is the implementation's responsibility.
    """

    def load_streak(self, user_id: str) -> Optional[StreakRecord]:
        ...

    def save_streak(self, record: StreakRecord) -> None:
        ...

    def log_prayer(self, user_id: str, day: date) -> int:
        """Count one prayer on `day`; return the day's new total."""
        ...

    def list_prayer_days(self, user_id: str, limit: int) -> List[PrayerDay]:
        """Most recent days first."""
        ...


class InMemoryStreakStore:
    """Dict-backed store for tests and DATABASE_URL-less development."""

    def __init__(self):
        self._records: Dict[str, StreakRecord] = {}
        self._days: Dict[Tuple[str, date], int] = {}

    def load_streak(self, user_id: str) -> Optional[StreakRecord]:
        return self._records.get(user_id)

    def save_streak(self, record: StreakRecord) -> None:
        self._records[record.user_id] = record

    def log_prayer(self, user_id: str, day: date) -> int:
        key = (user_id, day)
        self._days[key] = self._days.get(key, 0) + 1
        return self._days[key]

    def list_prayer_days(self, user_id: str, limit: int) -> List[PrayerDay]:
        days = sorted(
            (day for (owner, day) in self._days if owner == user_id),
            reverse=True,
        )
        return [
            PrayerDay(user_id=user_id, day=day, prayers_count=self._days[(user_id, day)])
            for day in days[:limit]
        ]

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        self._records.clear()
        self._days.clear()


def get_streak_store() -> StreakStore:
    """
    Pick the streak store implementation.

    - SQL store if DATABASE_URL is configured, reachable and has its tables
    - In-memory otherwise
    """
    from kingdomquest.core.database import check_connection, ensure_schema, get_database_url

    if get_database_url():
        from kingdomquest.features.streaks.store_sql import SqlStreakStore

        if check_connection() and ensure_schema():
            return SqlStreakStore()
        logger.warning("[streaks] database unavailable, falling back to in-memory store")

    return InMemoryStreakStore()
