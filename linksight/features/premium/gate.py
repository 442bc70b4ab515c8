"""
linksight/features/premium/gate.py

Premium access gate.

Decides whether a user may perform one more premium action now:
- role limits come from the registry, loaded once per gate instance;
  the shared instance is rebuilt after PREMIUM_LIMITS_TTL_SECONDS so
  limit edits made by other processes reach this one
- usage is counted inside the user's current cycle
- profile analyses are throttled by days_between_analysis
- post optimizations are also capped per post (max_per_post)

The gate never records actions. Check-then-record is not atomic, so
concurrent requests can overshoot a limit by a few actions.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from threading import Lock
from time import monotonic
from typing import Mapping, Optional

from linksight.core.config import settings
from linksight.core.logging import log_event
from linksight.core.timeutils import normalize_now
from linksight.features.premium.cycle import resolve_cycle_start
from linksight.features.premium.limits import load_all_role_limits, normalize_role
from linksight.features.premium.usage import (
    count_actions_since,
    count_post_optimizations,
    get_last_action_at,
    usage_count,
    parse_action_type,
)
from linksight.models.premium_action import ActionType
from linksight.models.premium_limit import RoleLimits
from linksight.models.user import User


class GateReason(str, Enum):
    """Why the gate allowed or denied an action."""
    ALLOWED = "allowed"
    NO_LIMITS = "no_limits"
    MONTHLY_LIMIT_REACHED = "monthly_limit_reached"
    THROTTLED = "throttled"
    POST_LIMIT_REACHED = "post_limit_reached"


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: GateReason
    action_type: str
    current_usage: Optional[int] = None
    monthly_limit: Optional[int] = None
    cycle_start: Optional[datetime] = None
    retry_at: Optional[datetime] = None
    post_usage: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value,
            "action_type": self.action_type,
            "current_usage": self.current_usage,
            "monthly_limit": self.monthly_limit,
            "cycle_start": self.cycle_start.isoformat() if self.cycle_start else None,
            "retry_at": self.retry_at.isoformat() if self.retry_at else None,
            "post_usage": self.post_usage,
        }


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class AccessGate:
    """Pure decision function over (limits, cycle window, usage, last action)."""

    def __init__(self, limits: Mapping[str, RoleLimits]):
        self._limits = {normalize_role(role): value for role, value in limits.items()}

    @classmethod
    def from_registry(cls) -> "AccessGate":
        return cls(load_all_role_limits())

    def limits_for(self, role: str) -> Optional[RoleLimits]:
        return self._limits.get(normalize_role(role))

    def check(
        self,
        user: User,
        action_type: str,
        *,
        post_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GateDecision:
        """
        Decide whether `user` may perform one more `action_type` now.

        Args:
            user: Caller, with role and optional subscription_start_date
            action_type: profile_analysis, post_optimization or batch_analysis
            post_id: Target post for post_optimization (per-post cap)
            now: Fixed timestamp for deterministic checks

        Returns:
            GateDecision (denials are results, not exceptions)

        Raises:
            ValidationError: Unknown action_type
        """
        kind = parse_action_type(action_type)
        # a blank post_id (e.g. "?post_id=") means no target post
        if post_id is not None and not str(post_id).strip():
            post_id = None
        now = normalize_now(now)
        role = getattr(user.role, "value", user.role)
        limits = self.limits_for(role)

        if limits is None:
            log_event(
                "warning",
                "[gate] DENY no limits configured",
                user_id=user.user_id,
                action_type=kind.value,
                role=role,
            )
            return GateDecision(allowed=False, reason=GateReason.NO_LIMITS, action_type=kind.value)

        cycle_start = resolve_cycle_start(now, user.subscription_start_date)
        current_usage = usage_count(count_actions_since(user.user_id, cycle_start), kind.value)
        monthly_limit = limits.monthly_limit(kind.value)

        def decide(allowed: bool, reason: GateReason, **extra) -> GateDecision:
            decision = GateDecision(
                allowed=allowed,
                reason=reason,
                action_type=kind.value,
                current_usage=current_usage,
                monthly_limit=monthly_limit,
                cycle_start=cycle_start,
                **extra,
            )
            log_event(
                "info",
                "[gate] ALLOW" if allowed else "[gate] DENY",
                user_id=user.user_id,
                action_type=kind.value,
                role=role,
                reason=reason.value,
                current_usage=current_usage,
                monthly_limit=monthly_limit,
            )
            return decision

        if current_usage >= monthly_limit:
            return decide(False, GateReason.MONTHLY_LIMIT_REACHED)

        if kind is ActionType.PROFILE_ANALYSIS:
            days_between = limits.profile_analysis.days_between_analysis
            if days_between > 0:
                last_at = get_last_action_at(user.user_id, kind.value)
                if last_at is not None and (now.date() - last_at.date()).days < days_between:
                    retry_at = _start_of_day(last_at.date() + timedelta(days=days_between))
                    return decide(False, GateReason.THROTTLED, retry_at=retry_at)

        if kind is ActionType.POST_OPTIMIZATION and post_id is not None:
            post_usage = count_post_optimizations(user.user_id, post_id)
            if post_usage >= limits.post_optimization.max_per_post:
                return decide(False, GateReason.POST_LIMIT_REACHED, post_usage=post_usage)
            return decide(True, GateReason.ALLOWED, post_usage=post_usage)

        return decide(True, GateReason.ALLOWED)

    def check_profile_analysis(self, user: User, now: Optional[datetime] = None) -> GateDecision:
        return self.check(user, ActionType.PROFILE_ANALYSIS.value, now=now)

    def check_post_optimization(self, user: User, post_id: str, now: Optional[datetime] = None) -> GateDecision:
        return self.check(user, ActionType.POST_OPTIMIZATION.value, post_id=post_id, now=now)

    def check_batch_analysis(self, user: User, now: Optional[datetime] = None) -> GateDecision:
        return self.check(user, ActionType.BATCH_ANALYSIS.value, now=now)


_gate: Optional[AccessGate] = None
_gate_loaded_at = 0.0
_gate_lock = Lock()


def get_access_gate() -> AccessGate:
    """Shared gate, rebuilt from the registry once it is older than the TTL."""
    global _gate, _gate_loaded_at
    with _gate_lock:
        now = monotonic()
        if _gate is None or now - _gate_loaded_at >= settings.PREMIUM_LIMITS_TTL_SECONDS:
            _gate = AccessGate.from_registry()
            _gate_loaded_at = now
        return _gate


def reset_access_gate() -> None:
    """Drop the shared gate so the next call reloads limits."""
    global _gate
    with _gate_lock:
        _gate = None
