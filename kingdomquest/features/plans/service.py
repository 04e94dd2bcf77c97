"""
kingdomquest/features/plans/service.py

Plan-tier feature gating.

Handles:
- The static feature -> minimum plan table
- Single and batch access checks against the plan hierarchy
- Resolving a user's plan from their active subscription
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Union
import logging

from kingdomquest.core.config import settings
from kingdomquest.core.errors import ValidationError
from kingdomquest.core.metrics import feature_access_checks_total
from kingdomquest.features.plans.subscriptions import SubscriptionStore
from kingdomquest.models.plan import FeatureAccess, PlanType


logger = logging.getLogger("kingdomquest")

PlanLike = Union[PlanType, str, None]

# Features mapped to the lowest plan that unlocks them
FEATURE_REQUIREMENTS: Mapping[str, PlanType] = MappingProxyType({
    # Free tier
    "core_stories": PlanType.FREE,
    "basic_quizzes": PlanType.FREE,
    "family_altar": PlanType.FREE,
    "community_support": PlanType.FREE,

    # Premium tier
    "deluxe_quest_packs": PlanType.PREMIUM,
    "extra_media_content": PlanType.PREMIUM,
    "offline_access": PlanType.PREMIUM,
    "priority_support": PlanType.PREMIUM,
    "advanced_analytics": PlanType.PREMIUM,
    "premium_stories": PlanType.PREMIUM,
    "premium_quizzes": PlanType.PREMIUM,

    # Church tier
    "admin_dashboard": PlanType.CHURCH,
    "custom_branding": PlanType.CHURCH,
    "user_analytics": PlanType.CHURCH,
    "privacy_sla": PlanType.CHURCH,
    "user_management": PlanType.CHURCH,
    "bulk_enrollment": PlanType.CHURCH,
    "dedicated_support": PlanType.CHURCH,
})

# Undocumented features are never free
DEFAULT_REQUIRED_PLAN = PlanType.PREMIUM

PLAN_DISPLAY_NAMES = {
    PlanType.FREE: "Free",
    PlanType.PREMIUM: "Premium",
    PlanType.CHURCH: "Church",
}


def parse_plan(value: PlanLike) -> Optional[PlanType]:
    """Parse a plan name case-insensitively; None when unrecognized."""
    if isinstance(value, PlanType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return PlanType(value.strip().lower())
    except ValueError:
        return None


def _effective_plan(user_plan: PlanLike) -> PlanType:
    plan = parse_plan(user_plan)
    if plan is None:
        logger.warning(
            "[plans] unrecognized plan, treating as free",
            extra={"plan": str(user_plan)},
        )
        return PlanType.FREE
    return plan


def required_plan_for(feature: str) -> PlanType:
    return FEATURE_REQUIREMENTS.get(feature, DEFAULT_REQUIRED_PLAN)


def upgrade_url(required_plan: PlanType) -> str:
    base = settings.BILLING_UPGRADE_PATH.rstrip("/") or "/"
    return f"{base}?upgrade={required_plan.value}"


def _feature_name(feature) -> str:
    # Non-string input is checked under its text form
    return feature if isinstance(feature, str) else str(feature)


def _decide(current: PlanType, feature) -> FeatureAccess:
    feature = _feature_name(feature)
    required = required_plan_for(feature)
    granted = current.rank >= required.rank
    feature_access_checks_total.inc(labels={"result": "granted" if granted else "denied"})
    return FeatureAccess(
        feature=feature,
        granted=granted,
        current_plan=current,
        required_plan=required,
        upgrade_url=None if granted else upgrade_url(required),
    )


def check_access(user_plan: PlanLike, feature: str) -> FeatureAccess:
    """
    Decide whether `user_plan` unlocks `feature`.

    Never raises: unknown features require premium, unknown plans count as free.
    """
    return _decide(_effective_plan(user_plan), feature)


def check_access_many(user_plan: PlanLike, features: Iterable[str]) -> Dict[str, FeatureAccess]:
    """Check each feature independently; keys follow input order."""
    current = _effective_plan(user_plan)
    results: Dict[str, FeatureAccess] = {}
    for feature in features:
        name = _feature_name(feature)
        if name not in results:
            results[name] = _decide(current, name)
    return results


def plan_display_name(plan: PlanLike) -> str:
    parsed = parse_plan(plan)
    return PLAN_DISPLAY_NAMES[parsed] if parsed else PLAN_DISPLAY_NAMES[PlanType.FREE]


def features_for_plan(plan: PlanType) -> List[str]:
    """Every listed feature the plan unlocks, in table order."""
    return [
        feature
        for feature, required in FEATURE_REQUIREMENTS.items()
        if plan.rank >= required.rank
    ]


class PlanResolver:
    """Resolve users to plan tiers through an injected subscription store."""

    def __init__(self, subscriptions: SubscriptionStore):
        self._subscriptions = subscriptions

    def resolve_plan(self, user_id: str) -> PlanType:
        """
        Resolve a user's plan tier.

        No active subscription resolves to free. Storage failures propagate
        as UpstreamFailureError.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("User ID is required")
        subscription = self._subscriptions.load_active_subscription(user_id.strip())
        if subscription is None:
            return PlanType.FREE
        return _effective_plan(subscription.plan_name)

    def check_user_access(self, user_id: str, feature: str) -> FeatureAccess:
        return check_access(self.resolve_plan(user_id), feature)

    def check_user_access_many(self, user_id: str, features: Iterable[str]) -> Dict[str, FeatureAccess]:
        return check_access_many(self.resolve_plan(user_id), features)


_resolver_instance: Optional[PlanResolver] = None


def get_plan_resolver() -> PlanResolver:
    """FastAPI dependency provider for the plan resolver."""
    global _resolver_instance
    if _resolver_instance is None:
        from kingdomquest.features.plans.subscriptions import get_subscription_store

        _resolver_instance = PlanResolver(get_subscription_store())
    return _resolver_instance


def reset_plan_resolver() -> None:
    """FOR TESTING ONLY - forces re-initialization on next use."""
    global _resolver_instance
    _resolver_instance = None
