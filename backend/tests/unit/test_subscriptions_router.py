"""
Unit tests for the Subscriptions and Account Status routers.

The resolver is replaced through dependency_overrides; authentication runs
for real against HS256 test tokens.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.api.dependencies import get_subscription_resolver
from app.domain.subscription import (
    ActionType,
    ActionUsage,
    PlanName,
    Subscription,
    SubscriptionStatus,
    UsageSummary,
    resolve_limits,
)
from app.infrastructure.services.subscription_resolver import SubscriptionResolver


NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)


def _summary(user_id: str, plan: PlanName = PlanName.FREE, **overrides) -> UsageSummary:
    limits = resolve_limits(plan)
    usage = {
        action: ActionUsage(
            action_type=action,
            used=0,
            limit=limits.limit_for(action),
            remaining=None if limits.limit_for(action) == -1 else limits.limit_for(action),
            unlimited=limits.limit_for(action) == -1,
            allowed=True,
        )
        for action in ActionType
    }
    fields = {
        "user_id": user_id,
        "plan": plan,
        "status": SubscriptionStatus.ACTIVE,
        "features": limits.as_features(),
        "ai_response_delay_seconds": 6.0,
        "usage": usage,
    }
    fields.update(overrides)
    return UsageSummary(**fields)


@pytest.fixture
def mock_resolver():
    resolver = MagicMock()
    resolver.list_plans = MagicMock(side_effect=SubscriptionResolver.list_plans)
    resolver.get_usage_summary = AsyncMock()
    resolver.check_action = AsyncMock()
    resolver.ensure_subscription = AsyncMock(return_value=True)
    resolver.is_new_account = AsyncMock(return_value=False)
    resolver.activate_trial = AsyncMock(return_value=None)
    resolver.add_new_account_status = AsyncMock(return_value=True)
    resolver.get_subscription = AsyncMock(return_value=None)
    resolver.cancel_subscription = AsyncMock(return_value=True)
    return resolver


@pytest.fixture
def api(app, client, mock_resolver):
    app.dependency_overrides[get_subscription_resolver] = lambda: mock_resolver
    return client


# ============================================================================
# Plan Catalogue
# ============================================================================

class TestListPlans:

    def test_lists_three_plans_without_auth(self, api):
        resp = api.get("/api/subscriptions/plans")

        assert resp.status_code == 200
        plans = {plan["name"]: plan for plan in resp.json()}
        assert set(plans) == {"Free", "Small Event Org", "Large Event Org"}
        assert plans["Free"]["limits"]["events_created"] == 10
        assert plans["Large Event Org"]["limits"]["invite_people"] == -1
        assert plans["Small Event Org"]["price_cents"] == 15900
        assert plans["Large Event Org"]["features"]["higher_ai_priority"] is True


# ============================================================================
# Status & Usage
# ============================================================================

class TestSubscriptionStatus:

    def test_requires_auth(self, api):
        resp = api.get("/api/subscriptions/status")
        assert resp.status_code == 401
        assert "error" in resp.json()

    def test_returns_summary_for_token_user(self, api, mock_resolver, mock_user_id, auth_headers):
        mock_resolver.get_usage_summary.return_value = _summary(mock_user_id)

        resp = api.get("/api/subscriptions/status", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["plan"] == "Free"
        assert data["usage"]["events_created"]["limit"] == 10
        mock_resolver.get_usage_summary.assert_awaited_once_with(mock_user_id)


class TestActionUsage:

    def test_reports_limit_check(self, api, mock_resolver, mock_user_id, auth_headers):
        mock_resolver.check_action.return_value = ActionUsage(
            action_type=ActionType.EVENTS_CREATED,
            used=10,
            limit=10,
            remaining=0,
            allowed=False,
        )

        resp = api.get("/api/subscriptions/usage/events_created", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["allowed"] is False
        assert data["used"] == 10
        mock_resolver.check_action.assert_awaited_once_with(
            mock_user_id, ActionType.EVENTS_CREATED, None
        )

    def test_passes_event_scope(self, api, mock_resolver, mock_user_id, auth_headers):
        event_id = uuid4()
        mock_resolver.check_action.return_value = ActionUsage(
            action_type=ActionType.AI_INSIGHTS_PER_EVENT,
            used=1,
            limit=5,
            remaining=4,
            allowed=True,
        )

        resp = api.get(
            f"/api/subscriptions/usage/ai_insights_per_event?event_id={event_id}",
            headers=auth_headers,
        )

        assert resp.status_code == 200
        mock_resolver.check_action.assert_awaited_once_with(
            mock_user_id, ActionType.AI_INSIGHTS_PER_EVENT, event_id
        )

    def test_unknown_action_rejected(self, api, mock_resolver, auth_headers):
        resp = api.get("/api/subscriptions/usage/launch_rockets", headers=auth_headers)

        assert resp.status_code == 422
        assert resp.json()["error"] == "RequestValidationError"
        mock_resolver.check_action.assert_not_awaited()

    def test_malformed_event_id_rejected(self, api, auth_headers):
        resp = api.get("/api/subscriptions/usage/ai_chat?event_id=nope", headers=auth_headers)
        assert resp.status_code == 422


# ============================================================================
# Provisioning & Trial
# ============================================================================

class TestEnsureSubscription:

    def test_success(self, api, mock_resolver, auth_headers):
        resp = api.post("/api/subscriptions/ensure", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_failure_is_500(self, api, mock_resolver, auth_headers):
        mock_resolver.ensure_subscription.return_value = False

        resp = api.post("/api/subscriptions/ensure", headers=auth_headers)

        assert resp.status_code == 500
        assert resp.json()["error"] == "SubscriptionProvisioningError"


class TestActivateTrial:

    def test_not_eligible_is_409(self, api, mock_resolver, auth_headers):
        mock_resolver.is_new_account.return_value = False

        resp = api.post("/api/subscriptions/trial", headers=auth_headers)

        assert resp.status_code == 409
        assert resp.json()["error"] == "TrialNotAvailableError"
        mock_resolver.activate_trial.assert_not_awaited()

    def test_activation_returns_trial_summary(self, api, mock_resolver, mock_user_id, auth_headers):
        trial_end = NOW + timedelta(days=30)
        mock_resolver.is_new_account.return_value = True
        mock_resolver.activate_trial.return_value = Subscription(
            user_id=mock_user_id,
            plan_name=PlanName.SMALL_EVENT_ORG,
            status=SubscriptionStatus.TRIALING,
            is_trial=True,
            trial_start=NOW,
            trial_end=trial_end,
            current_period_end=trial_end,
        )
        mock_resolver.get_usage_summary.return_value = _summary(
            mock_user_id,
            PlanName.SMALL_EVENT_ORG,
            status=SubscriptionStatus.TRIALING,
            is_trial=True,
            trial_end=trial_end,
        )

        resp = api.post("/api/subscriptions/trial", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["plan"] == "Small Event Org"
        assert data["status"] == "trialing"
        assert data["is_trial"] is True

    def test_activation_failure_is_500(self, api, mock_resolver, auth_headers):
        mock_resolver.is_new_account.return_value = True
        mock_resolver.activate_trial.return_value = None

        resp = api.post("/api/subscriptions/trial", headers=auth_headers)

        assert resp.status_code == 500


class TestAccountStatus:

    def test_records_new_account(self, api, mock_resolver, mock_user_id, auth_headers):
        mock_resolver.is_new_account.return_value = True

        resp = api.post("/api/account-status", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json() == {"user_id": mock_user_id, "new_account": True}
        mock_resolver.add_new_account_status.assert_awaited_once_with(mock_user_id)

    def test_failure_is_500(self, api, mock_resolver, auth_headers):
        mock_resolver.add_new_account_status.return_value = False

        resp = api.post("/api/account-status", headers=auth_headers)

        assert resp.status_code == 500
        assert resp.json()["error"] == "DatabaseError"


class TestCancelSubscription:

    def _current(self, user_id: str) -> Subscription:
        return Subscription(
            user_id=user_id,
            plan_name=PlanName.SMALL_EVENT_ORG,
            status=SubscriptionStatus.ACTIVE,
            current_period_end=datetime.now(timezone.utc) + timedelta(days=10),
        )

    def test_nothing_to_cancel_is_404(self, api, mock_resolver, auth_headers):
        resp = api.post("/api/subscriptions/cancel", headers=auth_headers)

        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFoundError"
        mock_resolver.cancel_subscription.assert_not_awaited()

    def test_cancels_at_period_end_by_default(self, api, mock_resolver, mock_user_id, auth_headers):
        mock_resolver.get_subscription.return_value = self._current(mock_user_id)
        mock_resolver.get_usage_summary.return_value = _summary(
            mock_user_id, PlanName.SMALL_EVENT_ORG, cancel_at_period_end=True
        )

        resp = api.post("/api/subscriptions/cancel", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["cancel_at_period_end"] is True
        mock_resolver.cancel_subscription.assert_awaited_once_with(mock_user_id, True)

    def test_immediate_cancellation(self, api, mock_resolver, mock_user_id, auth_headers):
        mock_resolver.get_subscription.return_value = self._current(mock_user_id)
        mock_resolver.get_usage_summary.return_value = _summary(mock_user_id)

        resp = api.post(
            "/api/subscriptions/cancel",
            json={"cancel_at_period_end": False},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["plan"] == "Free"
        mock_resolver.cancel_subscription.assert_awaited_once_with(mock_user_id, False)

    def test_failure_is_500(self, api, mock_resolver, mock_user_id, auth_headers):
        mock_resolver.get_subscription.return_value = self._current(mock_user_id)
        mock_resolver.cancel_subscription.return_value = False

        resp = api.post("/api/subscriptions/cancel", headers=auth_headers)

        assert resp.status_code == 500
        assert resp.json()["error"] == "DatabaseError"
