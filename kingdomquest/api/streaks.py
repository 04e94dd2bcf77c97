from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from kingdomquest.features.streaks.service import StreakService, get_streak_service

router = APIRouter()


class PrayerEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, alias="userId")
    occurred_at: Optional[datetime] = Field(None, alias="occurredAt")


@router.post("/v1/streaks/update")
def update_streak(event: PrayerEvent, service: StreakService = Depends(get_streak_service)):
    """Record a prayer for the user and return the updated streak."""
    record = service.record_prayer_event(event.user_id, event.occurred_at)
    return {"success": True, "data": record.model_dump(mode="json")}


@router.get("/v1/streaks/current")
def get_current_streak(
    user_id: str = Query(..., min_length=1),
    service: StreakService = Depends(get_streak_service),
):
    summary = service.get_streak(user_id)
    return {"success": True, "data": summary.model_dump(mode="json")}


@router.get("/v1/streaks/history")
def get_prayer_history(
    user_id: str = Query(..., min_length=1),
    limit: Optional[int] = Query(None, ge=1, le=365),
    service: StreakService = Depends(get_streak_service),
):
    days = service.prayer_history(user_id, limit)
    return {"success": True, "data": [day.model_dump(mode="json") for day in days]}
