"""
kingdomquest/models/plan.py

Plan tiers, subscriptions and feature access results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PlanType(str, Enum):
    """
    Capability tiers, declared in ascending order.

    free < premium < church
    """
    FREE = "free"
    PREMIUM = "premium"
    CHURCH = "church"

    @property
    def rank(self) -> int:
        return PLAN_HIERARCHY.index(self)


PLAN_HIERARCHY = [PlanType.FREE, PlanType.PREMIUM, PlanType.CHURCH]


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


class Subscription(BaseModel):
    """
    A user's subscription row as read from storage.

    plan_name is kept raw; resolution to a PlanType happens in the plans service.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan_name: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    created_at: datetime


class FeatureAccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature: str
    granted: bool
    current_plan: PlanType
    required_plan: PlanType
    upgrade_url: Optional[str] = None
