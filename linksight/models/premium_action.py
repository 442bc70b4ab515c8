"""
linksight/models/premium_action.py

PremiumAction model: one immutable record per premium action performed.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class ActionType(str, Enum):
    """Premium-gated operations."""
    PROFILE_ANALYSIS = "profile_analysis"
    POST_OPTIMIZATION = "post_optimization"
    BATCH_ANALYSIS = "batch_analysis"


class PremiumAction(BaseModel):
    """
    PremiumAction records a completed premium action.

    Metadata is an open bag; known keys:
    - post_id: target post of a post_optimization
    - recommendation_id: recommendation generated by a profile_analysis
    """
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    action_type: ActionType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ActionCount(BaseModel):
    """Number of actions of one type inside a usage window."""
    model_config = ConfigDict(frozen=True)

    action_type: str
    count: int
