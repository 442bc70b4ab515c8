"""
linksight/models/premium_limit.py

Per-role premium limits.

Rows are stored flat (role, action_type, limit_type, limit_value) and
folded into RoleLimits for callers.
"""

from pydantic import BaseModel, ConfigDict


class PremiumLimit(BaseModel):
    """A single configured limit row."""
    model_config = ConfigDict(frozen=True)

    role: str
    action_type: str
    limit_type: str
    limit_value: int


class ProfileAnalysisLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    days_between_analysis: int = 0
    monthly_limit: int = 0


class PostOptimizationLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_per_post: int = 0
    monthly_limit: int = 0


class BatchAnalysisLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly_limit: int = 0


class RoleLimits(BaseModel):
    """
    Limits for every known action type of one role.

    Always has the same shape; limits not configured for the role are 0,
    which denies the action.
    """
    model_config = ConfigDict(frozen=True)

    profile_analysis: ProfileAnalysisLimits = ProfileAnalysisLimits()
    post_optimization: PostOptimizationLimits = PostOptimizationLimits()
    batch_analysis: BatchAnalysisLimits = BatchAnalysisLimits()

    def monthly_limit(self, action_type: str) -> int:
        return getattr(self, action_type).monthly_limit
