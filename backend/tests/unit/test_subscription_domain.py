"""
Unit tests for the subscription domain rules.

Plan resolution, limit table lookups and the unlimited sentinel.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.domain.subscription import (
    PLAN_LIMITS,
    TRIAL_PLAN,
    UNLIMITED,
    ActionType,
    Feature,
    PlanName,
    Subscription,
    SubscriptionStatus,
    ai_response_delay,
    as_utc,
    is_unlimited,
    remaining_capacity,
    resolve_limits,
    resolve_plan,
    within_limit,
)


class TestPlanResolution:
    """Stored plan names map to tiers; anything else is Free."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Free", PlanName.FREE),
            ("Free Tier", PlanName.FREE),
            ("Small Event Org", PlanName.SMALL_EVENT_ORG),
            ("small_event_org", PlanName.SMALL_EVENT_ORG),
            ("  LARGE EVENT ORG ", PlanName.LARGE_EVENT_ORG),
            ("large_event_org", PlanName.LARGE_EVENT_ORG),
        ],
    )
    def test_known_names(self, name, expected):
        assert resolve_plan(name) == expected

    @pytest.mark.parametrize("name", ["Enterprise", "", None, "premium"])
    def test_unknown_names_fall_back_to_free(self, name):
        assert resolve_plan(name) == PlanName.FREE
        assert resolve_limits(name) == PLAN_LIMITS[PlanName.FREE]

    def test_plan_enum_passes_through(self):
        assert resolve_plan(PlanName.LARGE_EVENT_ORG) == PlanName.LARGE_EVENT_ORG


class TestLimitTable:
    """Every plan defines every action and feature."""

    def test_every_plan_covers_every_action(self):
        for plan in PlanName:
            limits = resolve_limits(plan)
            assert set(limits.as_limits()) == {action.value for action in ActionType}

    def test_free_limits(self):
        limits = resolve_limits(PlanName.FREE)
        assert limits.limit_for(ActionType.EVENTS_CREATED) == 10
        assert limits.limit_for(ActionType.INVITE_PEOPLE) == 8
        assert limits.limit_for(ActionType.AI_CHAT) == 5
        assert not limits.has_feature(Feature.FAST_AI_ACCESS)

    def test_large_plan_unlimited_event_actions(self):
        limits = resolve_limits(PlanName.LARGE_EVENT_ORG)
        for action in (ActionType.EVENTS_CREATED, ActionType.EVENTS_JOINED, ActionType.INVITE_PEOPLE):
            assert limits.limit_for(action) == UNLIMITED
        assert limits.limit_for(ActionType.AI_CHAT) == 75
        assert limits.has_feature(Feature.HIGHER_AI_PRIORITY)

    def test_limits_are_immutable(self):
        limits = resolve_limits(PlanName.FREE)
        with pytest.raises(Exception):
            limits.events_created = 999

    def test_trial_plan_is_small_event_org(self):
        assert TRIAL_PLAN == PlanName.SMALL_EVENT_ORG

    def test_higher_tiers_have_shorter_ai_delay(self):
        assert (
            ai_response_delay(PlanName.FREE)
            > ai_response_delay(PlanName.SMALL_EVENT_ORG)
            > ai_response_delay(PlanName.LARGE_EVENT_ORG)
        )


class TestWithinLimit:
    """Pre-action usage U is allowed iff U < L, or L is unlimited."""

    @pytest.mark.parametrize("usage", [0, 1, 10, 500, 10_000])
    def test_unlimited_always_allows(self, usage):
        assert within_limit(usage, UNLIMITED) is True
        assert remaining_capacity(usage, UNLIMITED) is None

    @pytest.mark.parametrize(
        "usage, limit, expected",
        [
            (0, 10, True),
            (9, 10, True),
            (10, 10, False),
            (11, 10, False),
            (0, 0, False),
        ],
    )
    def test_strict_comparison(self, usage, limit, expected):
        assert within_limit(usage, limit) is expected

    def test_remaining_never_negative(self):
        assert remaining_capacity(3, 8) == 5
        assert remaining_capacity(12, 8) == 0

    def test_is_unlimited(self):
        assert is_unlimited(-1)
        assert not is_unlimited(0)


class TestSubscriptionEntity:
    """Current means active/trialing with an open window."""

    NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def _subscription(self, **overrides) -> Subscription:
        defaults = {
            "user_id": "00000000-0000-0000-0000-000000000001",
            "plan_name": PlanName.SMALL_EVENT_ORG,
            "status": SubscriptionStatus.ACTIVE,
            "current_period_end": self.NOW + timedelta(days=1),
        }
        defaults.update(overrides)
        return Subscription(**defaults)

    def test_active_in_window(self):
        assert self._subscription().is_current(self.NOW)

    def test_trialing_in_window(self):
        assert self._subscription(status=SubscriptionStatus.TRIALING).is_current(self.NOW)

    def test_window_ended(self):
        sub = self._subscription(current_period_end=self.NOW - timedelta(seconds=1))
        assert not sub.is_current(self.NOW)

    @pytest.mark.parametrize("status", [SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED])
    def test_inactive_status(self, status):
        assert not self._subscription(status=status).is_current(self.NOW)

    def test_naive_period_end_treated_as_utc(self):
        naive_end = (self.NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert self._subscription(current_period_end=naive_end).is_current(self.NOW)
        assert as_utc(naive_end).tzinfo == timezone.utc

    def test_builds_from_attributes(self):
        row = SimpleNamespace(
            user_id="user-1",
            plan_name=PlanName.LARGE_EVENT_ORG,
            status=SubscriptionStatus.ACTIVE,
            current_period_end=self.NOW + timedelta(days=3),
        )

        sub = Subscription.model_validate(row)

        assert sub.plan_name == PlanName.LARGE_EVENT_ORG
        assert sub.is_current(self.NOW)
