"""
User profile API.

- GET /api/user/profile: caller profile, subscription state and current cycle
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from linksight.core.auth import get_current_user
from linksight.features.premium.cycle import next_cycle_start, resolve_cycle_start
from linksight.models.user import User


router = APIRouter(prefix="/api/user", tags=["user"])


class ProfileResponse(BaseModel):
    id: str
    email: str
    role: str
    subscription_status: str
    subscription_plan: str
    subscription_start_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    cycle_start: datetime
    cycle_end: datetime


@router.get("/profile", response_model=ProfileResponse)
def get_profile(user: User = Depends(get_current_user)):
    return {
        "id": user.user_id,
        "email": user.email,
        "role": user.role.value,
        "subscription_status": user.subscription_status,
        "subscription_plan": user.subscription_plan,
        "subscription_start_date": user.subscription_start_date,
        "next_billing_date": user.next_billing_date,
        "cycle_start": resolve_cycle_start(subscription_start_date=user.subscription_start_date),
        "cycle_end": next_cycle_start(subscription_start_date=user.subscription_start_date),
    }
