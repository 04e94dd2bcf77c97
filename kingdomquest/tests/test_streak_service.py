from datetime import date, datetime, timedelta, timezone

import pytest

from kingdomquest.core.errors import UpstreamFailureError, ValidationError
from kingdomquest.core.metrics import streak_updates_total
from kingdomquest.features.streaks.service import StreakService
from kingdomquest.features.streaks.store import InMemoryStreakStore
from kingdomquest.models.streak import StreakRecord


DAY_ONE = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)


def test_first_prayer_creates_record(streak_service):
    record = streak_service.record_prayer_event("u1", DAY_ONE)

    assert record.current_streak == 1
    assert record.longest_streak == 1
    assert record.last_prayer_date == date(2024, 1, 1)
    assert record.streak_start == date(2024, 1, 1)
    assert record.missed_days == 0


def test_same_day_events_are_idempotent(streak_service):
    first = streak_service.record_prayer_event("u1", DAY_ONE)
    second = streak_service.record_prayer_event("u1", DAY_ONE + timedelta(hours=10))

    assert second == first
    assert streak_updates_total.value({"outcome": "unchanged"}) == 1


def test_consecutive_days_grow_streak(streak_service):
    for offset in range(3):
        record = streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=offset))

    assert record.current_streak == 3
    assert record.longest_streak == 3
    assert record.missed_days == 0
    assert record.streak_start == date(2024, 1, 1)


def test_gap_resets_streak_and_counts_missed(streak_store, streak_service):
    streak_store.save_streak(
        StreakRecord(
            user_id="u1",
            current_streak=5,
            longest_streak=5,
            last_prayer_date=date(2024, 1, 1),
            streak_start=date(2023, 12, 28),
            missed_days=0,
        )
    )

    record = streak_service.record_prayer_event("u1", datetime(2024, 1, 3, 8, 0, tzinfo=timezone.utc))

    assert record.current_streak == 1
    assert record.missed_days == 1
    assert record.last_prayer_date == date(2024, 1, 3)
    assert record.streak_start == date(2024, 1, 3)
    assert record.longest_streak == 5


@pytest.mark.parametrize("current", [1, 2, 9, 40])
def test_gap_of_two_always_resets_to_one(current):
    existing = StreakRecord(
        user_id="u1",
        current_streak=current,
        longest_streak=current + 3,
        last_prayer_date=date(2024, 3, 10),
        streak_start=date(2024, 1, 1),
        missed_days=4,
    )

    record, outcome = StreakService.next_state(existing, user_id="u1", today=date(2024, 3, 12))

    assert outcome == "reset"
    assert record.current_streak == 1
    assert record.missed_days == 5


def test_longest_streak_never_decreases(streak_service):
    offsets = [0, 1, 2, 3, 7, 8, 20, 21, 22, 23, 24, 40]
    previous_longest = 0
    for offset in offsets:
        record = streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=offset))
        assert record.longest_streak >= previous_longest
        assert record.longest_streak >= record.current_streak
        previous_longest = record.longest_streak

    assert record.longest_streak == 5
    assert record.missed_days == 3


def test_increment_after_reset_does_not_touch_longest(streak_service):
    for offset in (0, 1, 2, 5, 6):
        record = streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=offset))

    assert record.current_streak == 2
    assert record.longest_streak == 3
    assert record.streak_start == date(2024, 1, 6)


def test_day_boundary_is_utc(streak_service):
    # 23:30 at UTC-5 on Jan 1 is already Jan 2 in UTC
    eastern = timezone(timedelta(hours=-5))
    streak_service.record_prayer_event("u1", datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
    record = streak_service.record_prayer_event("u1", datetime(2024, 1, 1, 23, 30, tzinfo=eastern))

    assert record.current_streak == 2
    assert record.last_prayer_date == date(2024, 1, 2)


def test_naive_timestamps_are_treated_as_utc(streak_service):
    record = streak_service.record_prayer_event("u1", datetime(2024, 1, 1, 23, 59))
    assert record.last_prayer_date == date(2024, 1, 1)


def test_event_before_last_prayer_is_ignored(streak_service):
    streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=3))
    record = streak_service.record_prayer_event("u1", DAY_ONE)

    assert record.current_streak == 1
    assert record.last_prayer_date == date(2024, 1, 4)


def test_default_clock_is_used_when_no_timestamp():
    fixed = datetime(2024, 6, 1, 6, 0, tzinfo=timezone.utc)
    service = StreakService(InMemoryStreakStore(), clock=lambda: fixed)

    record = service.record_prayer_event("u1")

    assert record.last_prayer_date == date(2024, 6, 1)


@pytest.mark.parametrize("user_id", ["", "   ", None, 42])
def test_invalid_user_id_rejected(streak_service, user_id):
    with pytest.raises(ValidationError):
        streak_service.record_prayer_event(user_id, DAY_ONE)


@pytest.mark.parametrize("moment", ["2024-01-01", 1704067200, date(2024, 1, 1)])
def test_invalid_timestamp_rejected(streak_service, moment):
    with pytest.raises(ValidationError):
        streak_service.record_prayer_event("u1", moment)


def test_get_streak_defaults_to_zero(streak_service):
    summary = streak_service.get_streak("nobody")

    assert summary.current_streak == 0
    assert summary.longest_streak == 0
    assert summary.last_prayer_date is None


def test_get_streak_reflects_record(streak_service):
    streak_service.record_prayer_event("u1", DAY_ONE)
    streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=1))

    summary = streak_service.get_streak("u1")
    assert summary.current_streak == 2
    assert summary.streak_start == date(2024, 1, 1)


def test_prayer_history_counts_every_prayer(streak_service):
    streak_service.record_prayer_event("u1", DAY_ONE)
    streak_service.record_prayer_event("u1", DAY_ONE + timedelta(hours=2))
    streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=1))

    history = streak_service.prayer_history("u1")

    assert [(d.day, d.prayers_count) for d in history] == [
        (date(2024, 1, 2), 1),
        (date(2024, 1, 1), 2),
    ]


def test_prayer_history_limit(streak_service):
    for offset in range(5):
        streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=offset))

    assert len(streak_service.prayer_history("u1", limit=2)) == 2
    with pytest.raises(ValidationError):
        streak_service.prayer_history("u1", limit=0)


def test_users_are_independent(streak_service):
    streak_service.record_prayer_event("u1", DAY_ONE)
    streak_service.record_prayer_event("u1", DAY_ONE + timedelta(days=1))
    other = streak_service.record_prayer_event("u2", DAY_ONE + timedelta(days=1))

    assert other.current_streak == 1
    assert streak_service.get_streak("u1").current_streak == 2


def test_failed_save_leaves_history_untouched(streak_store, streak_service, monkeypatch):
    def fail(record):
        raise UpstreamFailureError("Streak storage unavailable (save)")

    monkeypatch.setattr(streak_store, "save_streak", fail)
    with pytest.raises(UpstreamFailureError):
        streak_service.record_prayer_event("u1", DAY_ONE)

    assert streak_service.prayer_history("u1") == []
    assert streak_service.get_streak("u1").current_streak == 0

    monkeypatch.undo()
    streak_service.record_prayer_event("u1", DAY_ONE)

    history = streak_service.prayer_history("u1")
    assert [(d.day, d.prayers_count) for d in history] == [(date(2024, 1, 1), 1)]
