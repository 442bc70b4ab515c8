from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: Role = Role.FREE
    subscription_status: str = "none"
    subscription_plan: str = "free"
    subscription_start_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    created_at: datetime
