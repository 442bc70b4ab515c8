"""
Tests for the premium action log and usage aggregation.
"""
import pytest
from datetime import datetime, timezone, timedelta
from uuid import uuid4

from linksight.core.errors import ValidationError
from linksight.features.premium.usage import (
    count_actions_since,
    count_post_optimizations,
    get_cycle_actions,
    get_last_action_at,
    get_monthly_actions,
    record_action,
    usage_count,
)
from linksight.models.premium_action import ActionCount, ActionType


NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


def test_record_action_returns_stored_action():
    user_id = f"user-{uuid4()}"
    action = record_action(user_id, "profile_analysis", {"recommendation_id": "r1"}, created_at=NOW)

    assert action.id is not None
    assert action.user_id == user_id
    assert action.action_type is ActionType.PROFILE_ANALYSIS
    assert action.metadata == {"recommendation_id": "r1"}
    assert action.created_at == NOW


def test_record_action_defaults_metadata_and_timestamp():
    before = datetime.now(timezone.utc)
    action = record_action(f"user-{uuid4()}", "batch_analysis")
    assert action.metadata == {}
    assert action.created_at >= before


def test_record_action_rejects_unknown_type():
    with pytest.raises(ValidationError):
        record_action(f"user-{uuid4()}", "video_analysis")


def test_record_action_stores_post_id_as_text():
    action = record_action(f"user-{uuid4()}", "post_optimization", {"post_id": 123})
    assert action.metadata["post_id"] == "123"


def test_counts_are_sparse_and_grouped():
    user_id = f"user-{uuid4()}"
    record_action(user_id, "profile_analysis", created_at=NOW)
    record_action(user_id, "post_optimization", {"post_id": "p1"}, created_at=NOW)
    record_action(user_id, "post_optimization", {"post_id": "p2"}, created_at=NOW)

    counts = count_actions_since(user_id, NOW - timedelta(days=1))
    assert counts == [
        ActionCount(action_type="post_optimization", count=2),
        ActionCount(action_type="profile_analysis", count=1),
    ]
    assert usage_count(counts, "batch_analysis") == 0


def test_window_start_is_inclusive():
    user_id = f"user-{uuid4()}"
    window_start = datetime(2024, 3, 1, tzinfo=timezone.utc)
    record_action(user_id, "batch_analysis", created_at=window_start)
    record_action(user_id, "batch_analysis", created_at=window_start - timedelta(microseconds=1))

    counts = count_actions_since(user_id, window_start)
    assert usage_count(counts, "batch_analysis") == 1


def test_counts_are_per_user():
    user_a = f"user-{uuid4()}"
    user_b = f"user-{uuid4()}"
    record_action(user_a, "batch_analysis", created_at=NOW)

    assert count_actions_since(user_b, NOW - timedelta(days=1)) == []


def test_monthly_actions_exclude_previous_month():
    user_id = f"user-{uuid4()}"
    record_action(user_id, "profile_analysis", created_at=datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc))
    record_action(user_id, "profile_analysis", created_at=datetime(2024, 3, 1, tzinfo=timezone.utc))

    counts = get_monthly_actions(user_id, now=NOW)
    assert counts == [ActionCount(action_type="profile_analysis", count=1)]


def test_cycle_actions_follow_subscription_anchor():
    user_id = f"user-{uuid4()}"
    anchor = datetime(2024, 1, 10, tzinfo=timezone.utc)
    # Before this cycle (cycle opened 2024-03-10), but inside the calendar month
    record_action(user_id, "batch_analysis", created_at=datetime(2024, 3, 5, tzinfo=timezone.utc))
    record_action(user_id, "batch_analysis", created_at=datetime(2024, 3, 12, tzinfo=timezone.utc))

    assert usage_count(get_cycle_actions(user_id, anchor, now=NOW), "batch_analysis") == 1
    assert usage_count(get_monthly_actions(user_id, now=NOW), "batch_analysis") == 2


def test_cycle_actions_without_anchor_match_monthly():
    user_id = f"user-{uuid4()}"
    record_action(user_id, "batch_analysis", created_at=NOW)
    assert get_cycle_actions(user_id, None, now=NOW) == get_monthly_actions(user_id, now=NOW)


def test_last_action_at_is_latest_of_type():
    user_id = f"user-{uuid4()}"
    assert get_last_action_at(user_id, "profile_analysis") is None

    record_action(user_id, "profile_analysis", created_at=NOW - timedelta(days=3))
    record_action(user_id, "profile_analysis", created_at=NOW - timedelta(days=1))
    record_action(user_id, "batch_analysis", created_at=NOW)

    assert get_last_action_at(user_id, "profile_analysis") == NOW - timedelta(days=1)


def test_post_optimizations_counted_per_post():
    user_id = f"user-{uuid4()}"
    record_action(user_id, "post_optimization", {"post_id": "P123"}, created_at=NOW)
    record_action(user_id, "post_optimization", {"post_id": "P123"}, created_at=NOW)
    record_action(user_id, "post_optimization", {"post_id": "P999"}, created_at=NOW)
    record_action(f"user-{uuid4()}", "post_optimization", {"post_id": "P123"}, created_at=NOW)

    assert count_post_optimizations(user_id, "P123") == 2
    assert count_post_optimizations(user_id, "P999") == 1
    assert count_post_optimizations(user_id, "P000") == 0
