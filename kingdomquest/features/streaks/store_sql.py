"""
kingdomquest/features/streaks/store_sql.py

SQLAlchemy-backed streak store over the prayer_streaks and prayer_days tables.
"""

from contextlib import contextmanager
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from kingdomquest.core.database import get_db_session, prayer_streaks, prayer_days
from kingdomquest.core.errors import UpstreamFailureError
from kingdomquest.models.streak import PrayerDay, StreakRecord


@contextmanager
def _upstream(operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        raise UpstreamFailureError(f"Streak storage unavailable ({operation})") from exc


class SqlStreakStore:
    """
    Database-backed streak store.

    Same contract as InMemoryStreakStore; one prayer_streaks row per user.
    """

    def __init__(self, session_factory: Callable = get_db_session):
        self._session = session_factory

    def load_streak(self, user_id: str) -> Optional[StreakRecord]:
        with _upstream("load"):
            with self._session() as session:
                row = session.execute(
                    select(prayer_streaks).where(prayer_streaks.c.user_id == user_id)
                ).first()
        if not row:
            return None
        return _row_to_record(row)

    def save_streak(self, record: StreakRecord) -> None:
        values = {
            "current_streak": record.current_streak,
            "longest_streak": record.longest_streak,
            "last_prayer_date": record.last_prayer_date,
            "streak_start": record.streak_start,
            "missed_days": record.missed_days,
        }
        with _upstream("save"):
            try:
                with self._session() as session:
                    result = session.execute(
                        update(prayer_streaks)
                        .where(prayer_streaks.c.user_id == record.user_id)
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        session.execute(
                            insert(prayer_streaks).values(user_id=record.user_id, **values)
                        )
            except IntegrityError:
                # Lost a race on the first insert; the row exists now
                with self._session() as session:
                    session.execute(
                        update(prayer_streaks)
                        .where(prayer_streaks.c.user_id == record.user_id)
                        .values(**values)
                    )

    def log_prayer(self, user_id: str, day: date) -> int:
        """Insert the day's row, or bump its count in place if it already exists."""
        with _upstream("log_prayer"):
            try:
                with self._session() as session:
                    session.execute(
                        insert(prayer_days).values(user_id=user_id, day=day, prayers_count=1)
                    )
                return 1
            except IntegrityError:
                # Day row already exists; count it atomically below
                pass

            with self._session() as session:
                session.execute(
                    update(prayer_days)
                    .where(prayer_days.c.user_id == user_id)
                    .where(prayer_days.c.day == day)
                    .values(prayers_count=prayer_days.c.prayers_count + 1)
                )
                return session.execute(
                    select(prayer_days.c.prayers_count)
                    .where(prayer_days.c.user_id == user_id)
                    .where(prayer_days.c.day == day)
                ).scalar_one()

    def list_prayer_days(self, user_id: str, limit: int) -> List[PrayerDay]:
        with _upstream("list_prayer_days"):
            with self._session() as session:
                rows = session.execute(
                    select(prayer_days)
                    .where(prayer_days.c.user_id == user_id)
                    .order_by(prayer_days.c.day.desc())
                    .limit(limit)
                ).all()
        return [
            PrayerDay(user_id=row.user_id, day=row.day, prayers_count=row.prayers_count)
            for row in rows
        ]


def _row_to_record(row) -> StreakRecord:
    return StreakRecord(
        user_id=row.user_id,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_prayer_date=row.last_prayer_date,
        streak_start=row.streak_start,
        missed_days=row.missed_days,
    )
