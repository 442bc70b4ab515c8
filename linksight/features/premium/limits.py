"""
linksight/features/premium/limits.py

Premium limit registry.

Handles:
- Default limit seeding (FREE, PRO, BUSINESS)
- Limit upserts (one row per role/action_type/limit_type)
- Folding a role's rows into RoleLimits
"""

import logging
from typing import Dict, List, Optional
from sqlalchemy import select, insert, update

from linksight.core.database import get_db_session, premium_limits
from linksight.models.premium_limit import (
    PremiumLimit,
    RoleLimits,
    ProfileAnalysisLimits,
    PostOptimizationLimits,
    BatchAnalysisLimits,
)


logger = logging.getLogger(__name__)

# Known (action_type, limit_type) combinations; anything else is ignored on read
KNOWN_LIMIT_TYPES = {
    "profile_analysis": ("days_between_analysis", "monthly_limit"),
    "post_optimization": ("max_per_post", "monthly_limit"),
    "batch_analysis": ("monthly_limit",),
}

# Default limits seeded into a fresh database
DEFAULT_PREMIUM_LIMITS = {
    "FREE": {
        "profile_analysis": {"days_between_analysis": 30, "monthly_limit": 1},
        "post_optimization": {"max_per_post": 1, "monthly_limit": 3},
        "batch_analysis": {"monthly_limit": 0},
    },
    "PRO": {
        "profile_analysis": {"days_between_analysis": 7, "monthly_limit": 10},
        "post_optimization": {"max_per_post": 3, "monthly_limit": 30},
        "batch_analysis": {"monthly_limit": 5},
    },
    "BUSINESS": {
        "profile_analysis": {"days_between_analysis": 1, "monthly_limit": 30},
        "post_optimization": {"max_per_post": 5, "monthly_limit": 100},
        "batch_analysis": {"monthly_limit": 20},
    },
}


def normalize_role(role: str) -> str:
    return (role or "").strip().upper()


def _notify_limits_changed() -> None:
    # Imported lazily: the gate module imports this one
    from linksight.features.premium.gate import reset_access_gate
    reset_access_gate()


def fold_limits(rows: List[PremiumLimit]) -> RoleLimits:
    """Build RoleLimits from a role's rows, ignoring unknown combinations."""
    values: Dict[str, Dict[str, int]] = {action: {} for action in KNOWN_LIMIT_TYPES}
    for row in rows:
        allowed = KNOWN_LIMIT_TYPES.get(row.action_type)
        if not allowed or row.limit_type not in allowed:
            logger.debug(
                "[limits] ignoring unknown limit",
                extra={"role": row.role, "action_type": row.action_type, "limit_type": row.limit_type},
            )
            continue
        values[row.action_type][row.limit_type] = row.limit_value

    return RoleLimits(
        profile_analysis=ProfileAnalysisLimits(**values["profile_analysis"]),
        post_optimization=PostOptimizationLimits(**values["post_optimization"]),
        batch_analysis=BatchAnalysisLimits(**values["batch_analysis"]),
    )


def list_limit_rows(role: Optional[str] = None) -> List[PremiumLimit]:
    """All configured rows, optionally for one role."""
    with get_db_session() as session:
        query = select(premium_limits)
        if role is not None:
            query = query.where(premium_limits.c.role == normalize_role(role))
        rows = session.execute(
            query.order_by(premium_limits.c.role, premium_limits.c.action_type, premium_limits.c.limit_type)
        ).all()

    return [
        PremiumLimit(
            role=row.role,
            action_type=row.action_type,
            limit_type=row.limit_type,
            limit_value=row.limit_value,
        )
        for row in rows
    ]


def get_role_limits(role: str) -> Optional[RoleLimits]:
    """
    Limits for a role (case-insensitive).

    Returns:
        RoleLimits, or None when the role has no rows at all. A role whose
        rows are all zero still returns RoleLimits so callers can tell
        "unconfigured" from "configured to deny".
    """
    rows = list_limit_rows(role)
    if not rows:
        return None
    return fold_limits(rows)


def load_all_role_limits() -> Dict[str, RoleLimits]:
    """Every configured role's limits, keyed by uppercase role."""
    by_role: Dict[str, List[PremiumLimit]] = {}
    for row in list_limit_rows():
        by_role.setdefault(row.role, []).append(row)
    return {role: fold_limits(rows) for role, rows in by_role.items()}


def set_limit(role: str, action_type: str, limit_type: str, limit_value: int) -> PremiumLimit:
    """Upsert a single limit row."""
    role_key = normalize_role(role)
    with get_db_session() as session:
        existing = session.execute(
            select(premium_limits.c.id)
            .where(premium_limits.c.role == role_key)
            .where(premium_limits.c.action_type == action_type)
            .where(premium_limits.c.limit_type == limit_type)
        ).first()

        if existing:
            session.execute(
                update(premium_limits)
                .where(premium_limits.c.id == existing.id)
                .values(limit_value=int(limit_value))
            )
        else:
            session.execute(
                insert(premium_limits).values(
                    role=role_key,
                    action_type=action_type,
                    limit_type=limit_type,
                    limit_value=int(limit_value),
                )
            )

    logger.info(
        "[limits] limit set",
        extra={"role": role_key, "action_type": action_type, "limit_type": limit_type, "limit_value": limit_value},
    )
    _notify_limits_changed()
    return PremiumLimit(role=role_key, action_type=action_type, limit_type=limit_type, limit_value=int(limit_value))


def seed_limits(defaults: Optional[Dict[str, Dict[str, Dict[str, int]]]] = None) -> int:
    """
    Seed default limits (idempotent).

    Existing rows are left untouched so administered values survive restarts.

    Returns:
        Number of rows inserted
    """
    table = defaults if defaults is not None else DEFAULT_PREMIUM_LIMITS
    inserted = 0

    with get_db_session() as session:
        existing = {
            (row.role, row.action_type, row.limit_type)
            for row in session.execute(
                select(premium_limits.c.role, premium_limits.c.action_type, premium_limits.c.limit_type)
            ).all()
        }
        for role, actions in table.items():
            role_key = normalize_role(role)
            for action_type, limits in actions.items():
                for limit_type, value in limits.items():
                    if (role_key, action_type, limit_type) in existing:
                        continue
                    session.execute(
                        insert(premium_limits).values(
                            role=role_key,
                            action_type=action_type,
                            limit_type=limit_type,
                            limit_value=int(value),
                        )
                    )
                    inserted += 1

    if inserted:
        logger.info("[limits] seeded default limits", extra={"rows": inserted})
        _notify_limits_changed()
    return inserted
