"""
Premium usage API routes.

- GET  /api/premium/limits: limits for the caller's role (null if unconfigured)
- GET  /api/premium/usage: calendar-month usage
- GET  /api/premium/cycle-usage: usage in the caller's billing cycle
- POST /api/premium/actions: record a completed premium action
- GET  /api/premium/check/{action_type}: access gate decision
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from linksight.core.auth import get_current_user
from linksight.features.premium.gate import AccessGate, get_access_gate
from linksight.features.premium.limits import get_role_limits
from linksight.features.premium.usage import get_cycle_actions, get_monthly_actions, record_action
from linksight.models.premium_action import ActionCount, ActionType, PremiumAction
from linksight.models.premium_limit import RoleLimits
from linksight.models.user import User


router = APIRouter(prefix="/api/premium", tags=["premium"])


class RecordActionRequest(BaseModel):
    """A premium action the client has just completed."""
    action_type: ActionType
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GateDecisionResponse(BaseModel):
    allowed: bool
    reason: str
    action_type: str
    current_usage: Optional[int] = None
    monthly_limit: Optional[int] = None
    cycle_start: Optional[str] = None  # ISO8601
    retry_at: Optional[str] = None  # ISO8601
    post_usage: Optional[int] = None


@router.get("/limits", response_model=Optional[RoleLimits])
def get_limits(user: User = Depends(get_current_user)):
    """Limits for the caller's role, or null when the role has none configured."""
    return get_role_limits(user.role.value)


@router.get("/usage", response_model=List[ActionCount])
def get_usage(user: User = Depends(get_current_user)):
    """Sparse per-type counts since the start of the calendar month."""
    return get_monthly_actions(user.user_id)


@router.get("/cycle-usage", response_model=List[ActionCount])
def get_cycle_usage(user: User = Depends(get_current_user)):
    """
    Sparse per-type counts in the current billing cycle.

    Anchored to subscription_start_date when the user has one,
    calendar month otherwise.
    """
    return get_cycle_actions(user.user_id, user.subscription_start_date)


@router.post("/actions", response_model=PremiumAction, status_code=201)
def create_action(body: RecordActionRequest, user: User = Depends(get_current_user)):
    """
    Record a completed premium action.

    Does not check limits: clients ask /check first and record only after
    the gated operation succeeded.

    Errors:
        400: missing or unknown action_type
    """
    return record_action(user.user_id, body.action_type.value, body.metadata)


@router.get("/check/{action_type}", response_model=GateDecisionResponse)
def check_action(
    action_type: str,
    post_id: Optional[str] = Query(None, description="Target post for post_optimization"),
    user: User = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    """Whether the caller may perform one more action of this type now (200 either way)."""
    return gate.check(user, action_type, post_id=post_id).to_dict()
