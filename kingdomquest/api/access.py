"""
Feature access API.

GET  /v1/access/check?feature=...&plan=...      (or &user_id=... to resolve the plan)
POST /v1/access/check-many                      {"features": [...], "plan" | "userId"}
GET  /v1/plans/{plan}/features
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from kingdomquest.core.errors import NotFoundError, ValidationError
from kingdomquest.features.plans.service import (
    PlanResolver,
    check_access,
    check_access_many,
    features_for_plan,
    get_plan_resolver,
    parse_plan,
    plan_display_name,
)

router = APIRouter(tags=["access"])


class CheckManyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    features: List[str] = Field(..., min_length=1)
    plan: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")


def _require_subject(plan: Optional[str], user_id: Optional[str]) -> None:
    if plan is None and not user_id:
        raise ValidationError("Either plan or user_id is required")


@router.get("/v1/access/check")
def get_access(
    feature: str = Query(..., min_length=1),
    plan: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    resolver: PlanResolver = Depends(get_plan_resolver),
):
    """An explicit plan wins over user_id resolution."""
    _require_subject(plan, user_id)
    if plan is not None:
        result = check_access(plan, feature)
    else:
        result = resolver.check_user_access(user_id, feature)
    return {"success": True, "data": result.model_dump(mode="json")}


@router.post("/v1/access/check-many")
def post_access_many(body: CheckManyRequest, resolver: PlanResolver = Depends(get_plan_resolver)):
    _require_subject(body.plan, body.user_id)
    if body.plan is not None:
        results = check_access_many(body.plan, body.features)
    else:
        results = resolver.check_user_access_many(body.user_id, body.features)
    return {
        "success": True,
        "data": {feature: access.model_dump(mode="json") for feature, access in results.items()},
    }


@router.get("/v1/plans/{plan}/features")
def get_plan_features(plan: str):
    parsed = parse_plan(plan)
    if parsed is None:
        raise NotFoundError(f"Unknown plan: {plan}")
    return {
        "success": True,
        "data": {
            "plan": parsed.value,
            "display_name": plan_display_name(parsed),
            "features": features_for_plan(parsed),
        },
    }
