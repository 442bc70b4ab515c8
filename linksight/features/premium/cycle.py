"""
linksight/features/premium/cycle.py

Usage-cycle resolution.

Two modes:
- calendar month: the window opens at 00:00 UTC on the 1st of the month
- anniversary: the window opens on the subscription's day-of-month, moving
  one calendar month at a time from the subscription start date

Month arithmetic uses dateutil.relativedelta, so an anchor on the 31st
falls back to the last day of shorter months (Jan 31 -> Feb 29 -> Mar 31).
"""

from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from linksight.core.timeutils import as_utc, normalize_now


def calendar_month_start(now: Optional[datetime] = None) -> datetime:
    """First instant of the month containing `now`."""
    now = normalize_now(now)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _months_elapsed(anchor: datetime, now: datetime) -> int:
    """Whole calendar months from anchor to now; negative if anchor is ahead."""
    months = (now.year - anchor.year) * 12 + (now.month - anchor.month)
    if months > 0 and anchor + relativedelta(months=months) > now:
        months -= 1
    return months


def resolve_cycle_start(
    now: Optional[datetime] = None,
    subscription_start_date: Optional[datetime] = None,
) -> datetime:
    """
    Start of the current usage-counting window.

    Args:
        now: Reference time (defaults to current UTC time)
        subscription_start_date: Billing anchor; calendar-month mode if None

    Returns:
        Cycle start, never later than `now` unless the subscription itself
        starts in the future, in which case the start date is returned as is.
    """
    now = normalize_now(now)
    if subscription_start_date is None:
        return calendar_month_start(now)

    anchor = as_utc(subscription_start_date)
    months = _months_elapsed(anchor, now)
    if months <= 0:
        return anchor
    return anchor + relativedelta(months=months)


def next_cycle_start(
    now: Optional[datetime] = None,
    subscription_start_date: Optional[datetime] = None,
) -> datetime:
    """Start of the window after the current one (exclusive end of the current cycle)."""
    now = normalize_now(now)
    if subscription_start_date is None:
        return calendar_month_start(now) + relativedelta(months=1)

    anchor = as_utc(subscription_start_date)
    months = max(_months_elapsed(anchor, now), 0)
    return anchor + relativedelta(months=months + 1)
