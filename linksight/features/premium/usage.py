"""
linksight/features/premium/usage.py

Premium action log and usage aggregation.

Handles:
- Recording premium actions (append-only)
- Sparse per-type counts inside a window
- Most-recent-action lookups for throttling
- Per-post counts for post optimizations
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Any, List
from sqlalchemy import select, insert, func

from linksight.core.database import get_db_session, premium_actions
from linksight.core.errors import ValidationError
from linksight.core.timeutils import as_utc, normalize_now
from linksight.features.premium.cycle import calendar_month_start, resolve_cycle_start
from linksight.models.premium_action import ActionCount, ActionType, PremiumAction


logger = logging.getLogger(__name__)


def parse_action_type(action_type: Any) -> ActionType:
    try:
        return ActionType(action_type)
    except ValueError:
        allowed = ", ".join(t.value for t in ActionType)
        raise ValidationError(f"Unknown action_type '{action_type}' (expected one of: {allowed})")


def record_action(
    user_id: str,
    action_type: str,
    metadata: Optional[Dict[str, Any]] = None,
    created_at: Optional[datetime] = None,
) -> PremiumAction:
    """
    Append a premium action to the log.

    Callers record only after the access gate allowed the action and the
    underlying operation succeeded; nothing here checks limits.

    Args:
        user_id: User who performed the action
        action_type: profile_analysis, post_optimization or batch_analysis
        metadata: Optional references (post_id, recommendation_id, ...)
        created_at: Timestamp of the action (defaults to now)

    Returns:
        The stored PremiumAction, including its generated id

    Raises:
        ValidationError: If action_type is not a known action type
    """
    parsed = parse_action_type(action_type)
    created_at = normalize_now(created_at)
    metadata = dict(metadata or {})
    if metadata.get("post_id") is not None:
        # per-post lookups compare post_id as text
        metadata["post_id"] = str(metadata["post_id"])

    with get_db_session() as session:
        result = session.execute(
            insert(premium_actions).values(
                user_id=user_id,
                action_type=parsed.value,
                metadata=metadata,
                created_at=created_at,
            )
        )
        action_id = result.inserted_primary_key[0]

    logger.info(
        "[premium] action recorded",
        extra={"user_id": user_id, "action_type": parsed.value, "action_id": action_id},
    )
    return PremiumAction(
        id=action_id,
        user_id=user_id,
        action_type=parsed,
        metadata=metadata,
        created_at=created_at,
    )


def count_actions_since(user_id: str, window_start: datetime) -> List[ActionCount]:
    """
    Count actions per type with created_at >= window_start.

    Sparse: action types without actions in the window are omitted, so
    callers must treat a missing type as 0.
    """
    window_start = as_utc(window_start)
    with get_db_session() as session:
        rows = session.execute(
            select(premium_actions.c.action_type, func.count().label("total"))
            .where(premium_actions.c.user_id == user_id)
            .where(premium_actions.c.created_at >= window_start)
            .group_by(premium_actions.c.action_type)
            .order_by(premium_actions.c.action_type)
        ).all()

    return [ActionCount(action_type=row.action_type, count=row.total) for row in rows]


def usage_count(counts: List[ActionCount], action_type: str) -> int:
    """Count for one type from a sparse result (0 when absent)."""
    for entry in counts:
        if entry.action_type == action_type:
            return entry.count
    return 0


def get_monthly_actions(user_id: str, now: Optional[datetime] = None) -> List[ActionCount]:
    """Usage since the start of the current calendar month."""
    return count_actions_since(user_id, calendar_month_start(now))


def get_cycle_actions(
    user_id: str,
    subscription_start_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> List[ActionCount]:
    """Usage in the current billing cycle (calendar month without an anchor)."""
    return count_actions_since(user_id, resolve_cycle_start(now, subscription_start_date))


def get_last_action_at(user_id: str, action_type: str) -> Optional[datetime]:
    """Timestamp of the user's most recent action of this type, if any."""
    with get_db_session() as session:
        last = session.execute(
            select(func.max(premium_actions.c.created_at))
            .where(premium_actions.c.user_id == user_id)
            .where(premium_actions.c.action_type == action_type)
        ).scalar()

    return as_utc(last) if last is not None else None


def count_post_optimizations(user_id: str, post_id: str) -> int:
    """Post optimizations ever recorded by the user for one post."""
    post_ref = premium_actions.c["metadata"]["post_id"].as_string()
    with get_db_session() as session:
        count = session.execute(
            select(func.count())
            .select_from(premium_actions)
            .where(premium_actions.c.user_id == user_id)
            .where(premium_actions.c.action_type == ActionType.POST_OPTIMIZATION.value)
            .where(post_ref == str(post_id))
        ).scalar()

    return int(count or 0)
