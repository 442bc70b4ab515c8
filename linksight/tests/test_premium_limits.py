"""
Tests for the premium limit registry.
"""
from sqlalchemy import insert, select, func

from linksight.core.database import get_db_session, premium_limits
from linksight.features.premium.gate import get_access_gate
from linksight.features.premium.limits import (
    DEFAULT_PREMIUM_LIMITS,
    fold_limits,
    get_role_limits,
    list_limit_rows,
    load_all_role_limits,
    seed_limits,
    set_limit,
)
from linksight.models.premium_limit import PremiumLimit, RoleLimits


def _row_count() -> int:
    with get_db_session() as session:
        return session.execute(select(func.count()).select_from(premium_limits)).scalar()


def test_unconfigured_role_returns_none():
    assert get_role_limits("FREE") is None


def test_seed_limits_inserts_defaults_once():
    expected = sum(len(limits) for actions in DEFAULT_PREMIUM_LIMITS.values() for limits in actions.values())
    assert seed_limits() == expected
    assert _row_count() == expected

    # Second seed is a no-op
    assert seed_limits() == 0
    assert _row_count() == expected


def test_seed_does_not_overwrite_administered_values():
    set_limit("PRO", "batch_analysis", "monthly_limit", 50)
    seed_limits()
    assert get_role_limits("PRO").batch_analysis.monthly_limit == 50


def test_get_role_limits_folds_rows():
    seed_limits()
    limits = get_role_limits("PRO")

    assert limits.profile_analysis.days_between_analysis == 7
    assert limits.profile_analysis.monthly_limit == 10
    assert limits.post_optimization.max_per_post == 3
    assert limits.post_optimization.monthly_limit == 30
    assert limits.batch_analysis.monthly_limit == 5


def test_role_lookup_is_case_insensitive():
    seed_limits()
    assert get_role_limits("business") == get_role_limits("BUSINESS")
    assert get_role_limits("Business").batch_analysis.monthly_limit == 20


def test_missing_limit_types_default_to_zero():
    set_limit("PRO", "post_optimization", "monthly_limit", 30)
    limits = get_role_limits("PRO")

    assert limits.post_optimization.monthly_limit == 30
    assert limits.post_optimization.max_per_post == 0
    assert limits.profile_analysis.monthly_limit == 0
    assert limits.batch_analysis.monthly_limit == 0


def test_unknown_limit_rows_are_ignored():
    with get_db_session() as session:
        session.execute(
            insert(premium_limits).values(role="PRO", action_type="profile_analysis", limit_type="weekly_limit", limit_value=9)
        )
        session.execute(
            insert(premium_limits).values(role="PRO", action_type="video_analysis", limit_type="monthly_limit", limit_value=9)
        )
    limits = get_role_limits("PRO")
    assert limits == RoleLimits()


def test_set_limit_upserts_single_row():
    set_limit("free", "batch_analysis", "monthly_limit", 1)
    set_limit("FREE", "batch_analysis", "monthly_limit", 2)

    rows = list_limit_rows("FREE")
    assert rows == [PremiumLimit(role="FREE", action_type="batch_analysis", limit_type="monthly_limit", limit_value=2)]


def test_load_all_role_limits_keys_by_role():
    seed_limits()
    all_limits = load_all_role_limits()
    assert set(all_limits) == {"FREE", "PRO", "BUSINESS"}
    assert all_limits["FREE"].post_optimization.max_per_post == 1


def test_fold_limits_of_no_rows_is_all_zero():
    assert fold_limits([]) == RoleLimits()


def test_limit_writes_invalidate_shared_gate():
    seed_limits()
    gate = get_access_gate()
    assert gate.limits_for("PRO").batch_analysis.monthly_limit == 5

    set_limit("PRO", "batch_analysis", "monthly_limit", 6)
    refreshed = get_access_gate()
    assert refreshed is not gate
    assert refreshed.limits_for("PRO").batch_analysis.monthly_limit == 6
