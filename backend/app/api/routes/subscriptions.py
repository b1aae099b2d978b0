"""
Subscription API Routes

Plan catalogue, per-user limits and usage, default provisioning and the
one-time free trial, and cancellation.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query

from app.api.dependencies import CurrentUserId, ResolverDep
from app.domain.subscription import (
    ActionType,
    ActionUsage,
    CancelSubscriptionRequest,
    EnsureSubscriptionResponse,
    PlanResponse,
    UsageSummary,
)
from app.infrastructure.exceptions import (
    DatabaseError,
    NotFoundError,
    SubscriptionProvisioningError,
    TrialNotAvailableError,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Plan Catalogue
# =============================================================================

@router.get("/subscriptions/plans", response_model=List[PlanResponse])
async def list_plans(resolver: ResolverDep):
    """Limits, feature flags and AI delay for every plan."""
    return resolver.list_plans()


# =============================================================================
# Status & Usage
# =============================================================================

@router.get("/subscriptions/status", response_model=UsageSummary)
async def get_subscription_status(user_id: CurrentUserId, resolver: ResolverDep):
    """
    Get the current user's plan and usage across all actions.

    Creates a Free subscription if none exists.
    """
    return await resolver.get_usage_summary(user_id)


@router.get("/subscriptions/usage/{action_type}", response_model=ActionUsage)
async def get_action_usage(
    action_type: ActionType,
    user_id: CurrentUserId,
    resolver: ResolverDep,
    event_id: Optional[UUID] = Query(
        default=None, description="Event scope for per-event actions"
    ),
):
    """
    Check one action against the user's plan.

    ``allowed`` is the answer to "may the user do this once more?".
    """
    return await resolver.check_action(user_id, action_type, event_id)


# =============================================================================
# Provisioning & Trial
# =============================================================================

@router.post("/subscriptions/ensure", response_model=EnsureSubscriptionResponse)
async def ensure_subscription(user_id: CurrentUserId, resolver: ResolverDep):
    """Make sure the user has a subscription row (Free by default)."""
    if not await resolver.ensure_subscription(user_id):
        raise SubscriptionProvisioningError(
            "Failed to provision default subscription",
            operation="ensure_subscription",
            table="user_subscriptions",
        )
    return EnsureSubscriptionResponse(success=True)


@router.post("/subscriptions/trial", response_model=UsageSummary)
async def activate_trial(user_id: CurrentUserId, resolver: ResolverDep):
    """
    Start the one-time free trial for a new account.

    Returns 409 when the account has already used its trial or was never
    flagged as new.
    """
    if not await resolver.is_new_account(user_id):
        raise TrialNotAvailableError(user_id)

    subscription = await resolver.activate_trial(user_id)
    if subscription is None:
        raise SubscriptionProvisioningError(
            "Failed to activate trial",
            operation="activate_trial",
            table="user_subscriptions",
        )

    return await resolver.get_usage_summary(user_id)


@router.post("/subscriptions/cancel", response_model=UsageSummary)
async def cancel_subscription(
    user_id: CurrentUserId,
    resolver: ResolverDep,
    request: Optional[CancelSubscriptionRequest] = None,
):
    """
    Cancel the current subscription, at period end by default.

    Returns 404 when the user has no active or trialing subscription.
    """
    at_period_end = request.cancel_at_period_end if request else True
    subscription = await resolver.get_subscription(user_id)
    if subscription is None or not subscription.is_current():
        raise NotFoundError(
            "No current subscription to cancel",
            operation="cancel_subscription",
            table="user_subscriptions",
        )

    if not await resolver.cancel_subscription(user_id, at_period_end):
        raise DatabaseError(
            "Failed to cancel subscription",
            operation="cancel_subscription",
            table="user_subscriptions",
        )

    return await resolver.get_usage_summary(user_id)
