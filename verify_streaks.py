#!/usr/bin/env python
"""
Walk-through of the prayer streak rules against the in-memory store.
Shows same-day idempotency, consecutive days, and the reset after a gap.
"""

from datetime import datetime, timedelta, timezone

from kingdomquest.features.streaks.service import StreakService
from kingdomquest.features.streaks.store import InMemoryStreakStore


def demo_scenario(name: str, demo_fn) -> None:
    print(f"\n{'='*70}")
    print(f"SCENARIO: {name}")
    print('='*70)
    demo_fn()


def scenario_first_prayer():
    """First prayer starts a streak at 1."""
    service = StreakService(InMemoryStreakStore())
    now = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)

    record = service.record_prayer_event("alice", now=now)

    print(f"✓ Current streak: {record.current_streak} day(s)")
    print(f"✓ Streak start: {record.streak_start}")
    assert record.current_streak == 1, "Fresh streak should be 1"
    assert record.longest_streak == 1


def scenario_consecutive_days():
    """Praying on the next UTC day extends the streak."""
    service = StreakService(InMemoryStreakStore())
    day1 = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)

    for offset in range(3):
        record = service.record_prayer_event("bob", now=day1 + timedelta(days=offset))

    print(f"✓ Current streak: {record.current_streak} day(s)")
    print(f"✓ Longest streak: {record.longest_streak} day(s)")
    assert record.current_streak == 3
    assert record.longest_streak == 3


def scenario_same_day_twice():
    """Two prayers on one day count once."""
    service = StreakService(InMemoryStreakStore())
    now = datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)

    first = service.record_prayer_event("carol", now=now)
    second = service.record_prayer_event("carol", now=now + timedelta(hours=14))
    history = service.prayer_history("carol")

    print(f"✓ First call: {first.current_streak}, second call: {second.current_streak}")
    print(f"✓ Prayers logged today: {history[0].prayers_count}")
    assert first == second, "Same-day events leave the record unchanged"
    assert history[0].prayers_count == 2


def scenario_missed_day():
    """A gap of more than one day restarts the run and counts a miss."""
    service = StreakService(InMemoryStreakStore())
    day1 = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)

    service.record_prayer_event("dave", now=day1)
    service.record_prayer_event("dave", now=day1 + timedelta(days=1))
    record = service.record_prayer_event("dave", now=day1 + timedelta(days=3, hours=13))

    print(f"✓ Current streak: {record.current_streak} day(s)")
    print(f"✓ Longest streak kept: {record.longest_streak} day(s)")
    print(f"✓ Missed streaks: {record.missed_days}")
    assert record.current_streak == 1
    assert record.longest_streak == 2
    assert record.missed_days == 1


def scenario_summary_for_unknown_user():
    """Users who never prayed read back as an empty summary."""
    service = StreakService(InMemoryStreakStore())

    summary = service.get_streak("erin")

    print(f"✓ Current streak: {summary.current_streak}")
    print(f"✓ Last prayer: {summary.last_prayer_date}")
    assert summary.current_streak == 0
    assert summary.last_prayer_date is None


if __name__ == "__main__":
    demo_scenario("First prayer", scenario_first_prayer)
    demo_scenario("Consecutive days", scenario_consecutive_days)
    demo_scenario("Same day twice", scenario_same_day_twice)
    demo_scenario("Missed day", scenario_missed_day)
    demo_scenario("Unknown user", scenario_summary_for_unknown_user)
    print(f"\n{'='*70}")
    print("All scenarios passed.")
