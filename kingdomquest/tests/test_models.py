"""
Tests for streak and plan models.
"""
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from kingdomquest.models.plan import FeatureAccess, PlanType, PLAN_HIERARCHY, Subscription
from kingdomquest.models.streak import PrayerDay, StreakRecord, StreakSummary


def _record(**overrides):
    values = dict(
        user_id="u1",
        current_streak=3,
        longest_streak=5,
        last_prayer_date=date(2024, 1, 3),
        streak_start=date(2024, 1, 1),
        missed_days=1,
    )
    values.update(overrides)
    return StreakRecord(**values)


def test_streak_record_frozen():
    record = _record()
    with pytest.raises(PydanticValidationError):
        record.current_streak = 10


def test_longest_must_cover_current():
    with pytest.raises(PydanticValidationError):
        _record(current_streak=6, longest_streak=5)


def test_streak_counters_are_bounded():
    with pytest.raises(PydanticValidationError):
        _record(current_streak=0)
    with pytest.raises(PydanticValidationError):
        _record(missed_days=-1)
    with pytest.raises(PydanticValidationError):
        _record(user_id="")


def test_summary_from_record_copies_fields():
    summary = StreakSummary.from_record(_record())
    assert summary.current_streak == 3
    assert summary.longest_streak == 5
    assert summary.missed_days == 1


def test_empty_summary():
    summary = StreakSummary.empty("u2")
    assert summary.user_id == "u2"
    assert summary.current_streak == 0
    assert summary.streak_start is None


def test_prayer_day_requires_a_prayer():
    with pytest.raises(PydanticValidationError):
        PrayerDay(user_id="u1", day=date(2024, 1, 1), prayers_count=0)


def test_plan_hierarchy_order():
    assert PLAN_HIERARCHY == [PlanType.FREE, PlanType.PREMIUM, PlanType.CHURCH]
    assert PlanType.FREE.rank < PlanType.PREMIUM.rank < PlanType.CHURCH.rank


def test_plan_type_serializes_as_string():
    access = FeatureAccess(
        feature="offline_access",
        granted=True,
        current_plan=PlanType.CHURCH,
        required_plan=PlanType.PREMIUM,
    )
    assert access.model_dump(mode="json")["current_plan"] == "church"


def test_subscription_defaults_to_active():
    sub = Subscription(user_id="u1", plan_name="premium", created_at=datetime.now(timezone.utc))
    assert sub.status.value == "active"
