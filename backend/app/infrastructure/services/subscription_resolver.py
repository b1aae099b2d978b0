"""
Subscription Resolver

Answers "can this user do X now?" and "how much capacity is left?".

Failure policy: lookups that cannot be resolved (missing plan row, query
error, malformed user ID) are logged and degrade to the Free plan's limits
instead of raising. Callers check return values; the only exception that
leaves the resolver is ValidationError for an unknown plan passed to
activate_plan.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.subscription import (
    BILLING_PERIOD_DAYS,
    EVENT_SCOPED_ACTIONS,
    PLAN_CURRENCY,
    PLAN_LIMITS,
    PLAN_PRICE_CENTS,
    TRIAL_PLAN,
    ActionType,
    ActionUsage,
    Feature,
    LimitSet,
    PlanName,
    PlanResponse,
    Subscription,
    SubscriptionStatus,
    UsageSummary,
    ai_response_delay,
    is_unlimited,
    remaining_capacity,
    resolve_limits,
    within_limit,
)
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.repositories.account_status_repository import AccountStatusRepository
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.db.repositories.usage_repository import UsageRepository
from app.infrastructure.exceptions import ValidationError
from app.infrastructure.services.subscription_notification_service import (
    SubscriptionNotificationService,
)


logger = logging.getLogger(__name__)

UserId = Union[str, UUID]
ScopeId = Optional[Union[str, UUID]]


class SubscriptionResolver:
    """
    Subscription and usage-limit resolution for one database session.

    Usage is derived by counting the domain rows each action creates,
    so there is no counter to keep in sync.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session = session
        self._settings = settings or get_settings()
        self._clock = clock
        self._subscriptions = SubscriptionRepository(session)
        self._account_status = AccountStatusRepository(session)
        self._usage = UsageRepository(session)
        self._notifications = SubscriptionNotificationService(session)

    # =========================================================================
    # Provisioning
    # =========================================================================

    async def ensure_subscription(self, user_id: UserId) -> bool:
        """
        Guarantee the user has a subscription row, creating a Free one.

        Safe under concurrent first requests: the insert is an
        ON CONFLICT DO NOTHING upsert on the unique user_id.

        Returns:
            True if a row exists afterwards, False if provisioning failed
        """
        try:
            if await self._subscriptions.get_by_user_id(user_id) is not None:
                return True

            free_plan = await self._subscriptions.get_plan_by_name(PlanName.FREE)
            if free_plan is None:
                logger.error("Free plan row is missing from subscription_plans")
                return False

            now = self._clock()
            inserted = await self._subscriptions.insert_default(
                user_id,
                plan_id=free_plan.id,
                period_start=now,
                period_end=now + timedelta(days=self._settings.default_subscription_days),
            )
            await self._session.commit()

            if inserted:
                logger.info(f"Created default Free subscription for user {user_id}")
            else:
                logger.debug(f"Subscription for user {user_id} created concurrently, keeping it")
            return True

        except Exception as e:
            logger.error(f"Error ensuring subscription for user {user_id}: {e}")
            await self._session.rollback()
            return False

    # =========================================================================
    # Limits
    # =========================================================================

    @staticmethod
    def resolve_limits(plan_name: Union[PlanName, str, None]) -> LimitSet:
        return resolve_limits(plan_name)

    @staticmethod
    def list_plans() -> List[PlanResponse]:
        """Plan catalogue from the in-code limit table."""
        return [
            PlanResponse(
                name=plan,
                price_cents=PLAN_PRICE_CENTS[plan],
                currency=PLAN_CURRENCY,
                limits=limits.as_limits(),
                features=limits.as_features(),
                ai_response_delay_seconds=ai_response_delay(plan),
            )
            for plan, limits in PLAN_LIMITS.items()
        ]

    async def get_subscription(self, user_id: UserId) -> Optional[Subscription]:
        """The user's row regardless of status, or None (also on failure)."""
        try:
            return await self._subscriptions.get_by_user_id(user_id)
        except Exception as e:
            logger.error(f"Error fetching subscription for user {user_id}: {e}")
            await self._session.rollback()
            return None

    async def get_active_plan(self, user_id: UserId) -> PlanName:
        """
        The plan of the user's current (active or trialing, unexpired)
        subscription. Free when there is none or it cannot be read.
        """
        try:
            subscription = await self._subscriptions.get_current(user_id, now=self._clock())
        except Exception as e:
            logger.error(f"Error resolving plan for user {user_id}, using Free: {e}")
            await self._session.rollback()
            return PlanName.FREE

        if subscription is None:
            return PlanName.FREE
        return subscription.plan_name

    # =========================================================================
    # Usage
    # =========================================================================

    async def get_usage(
        self,
        user_id: UserId,
        action_type: ActionType,
        scope_id: ScopeId = None,
    ) -> int:
        """Live count of prior uses; 0 when the count cannot be read."""
        try:
            return await self._usage.count(user_id, action_type, scope_id)
        except Exception as e:
            logger.error(f"Error counting {action_type.value} usage for user {user_id}: {e}")
            await self._session.rollback()
            return 0

    async def _action_usage(
        self,
        user_id: UserId,
        action_type: ActionType,
        limits: LimitSet,
        scope_id: ScopeId = None,
    ) -> ActionUsage:
        limit = limits.limit_for(action_type)
        used = await self.get_usage(user_id, action_type, scope_id)
        return ActionUsage(
            action_type=action_type,
            used=used,
            limit=limit,
            remaining=remaining_capacity(used, limit),
            unlimited=is_unlimited(limit),
            allowed=within_limit(used, limit),
        )

    async def check_action(
        self,
        user_id: UserId,
        action_type: ActionType,
        scope_id: ScopeId = None,
    ) -> ActionUsage:
        """Usage of one action against the user's current plan."""
        if action_type in EVENT_SCOPED_ACTIONS and scope_id is None:
            logger.debug(f"No event scope for {action_type.value}, counting account-wide")
        await self.ensure_subscription(user_id)
        plan = await self.get_active_plan(user_id)
        return await self._action_usage(user_id, action_type, resolve_limits(plan), scope_id)

    async def can_perform_action(
        self,
        user_id: UserId,
        action_type: ActionType,
        scope_id: ScopeId = None,
    ) -> bool:
        """
        True if the user may perform the action once more.

        Compares usage before the action: allowed iff used < limit,
        or the limit is unlimited.
        """
        usage = await self.check_action(user_id, action_type, scope_id)
        return usage.allowed

    async def record_usage(
        self,
        user_id: UserId,
        action_type: ActionType,
        scope_id: ScopeId = None,
        delta: int = 1,
    ) -> None:
        """
        Usage is the domain row the caller just created, so there is no
        counter to increment here.
        """
        logger.debug(
            f"Usage recorded for user {user_id}: {action_type.value} +{delta}"
            + (f" (event {scope_id})" if scope_id else "")
        )

    async def has_feature_access(self, user_id: UserId, feature: Feature) -> bool:
        plan = await self.get_active_plan(user_id)
        return resolve_limits(plan).has_feature(feature)

    async def get_usage_summary(self, user_id: UserId) -> UsageSummary:
        """Plan, status and per-action usage for the user."""
        await self.ensure_subscription(user_id)
        subscription = await self.get_subscription(user_id)

        now = self._clock()
        current = subscription if subscription and subscription.is_current(now) else None
        plan = current.plan_name if current else PlanName.FREE
        limits = resolve_limits(plan)

        usage: Dict[ActionType, ActionUsage] = {}
        for action_type in ActionType:
            usage[action_type] = await self._action_usage(user_id, action_type, limits)

        return UsageSummary(
            user_id=str(user_id),
            plan=plan,
            status=subscription.status if subscription else SubscriptionStatus.ACTIVE,
            is_trial=bool(current and current.is_trial),
            trial_end=current.trial_end if current else None,
            current_period_end=subscription.current_period_end if subscription else None,
            cancel_at_period_end=bool(subscription and subscription.cancel_at_period_end),
            features=limits.as_features(),
            ai_response_delay_seconds=ai_response_delay(plan),
            usage=usage,
        )

    # =========================================================================
    # Account Status & Trial
    # =========================================================================

    async def add_new_account_status(self, user_id: UserId) -> bool:
        """
        Flag an account as new (trial-eligible), e.g. on email verification.

        Idempotent: an existing status row is kept as is, including one whose
        trial has already been consumed.
        """
        try:
            inserted = await self._account_status.insert_new_account(user_id)
            await self._session.commit()
            if inserted:
                logger.info(f"New account status recorded for user {user_id}")
            return True
        except Exception as e:
            logger.error(f"Error adding new account status for user {user_id}: {e}")
            await self._session.rollback()
            return False

    async def is_new_account(self, user_id: UserId) -> bool:
        """False when there is no status row or it cannot be read."""
        try:
            status = await self._account_status.get_by_user_id(user_id)
        except Exception as e:
            logger.error(f"Error checking new account status for user {user_id}: {e}")
            await self._session.rollback()
            return False
        return bool(status and status.new_account)

    async def mark_trial_consumed(self, user_id: UserId) -> bool:
        """Clear the new-account flag so no further trial can be started."""
        try:
            updated = await self._account_status.set_new_account(user_id, False)
            await self._session.commit()
        except Exception as e:
            logger.error(f"Error marking trial consumed for user {user_id}: {e}")
            await self._session.rollback()
            return False
        if not updated:
            logger.warning(f"No account status row to update for user {user_id}")
        return bool(updated)

    async def activate_trial(self, user_id: UserId) -> Optional[Subscription]:
        """
        Switch a new account to the trial plan for the configured window.

        One-time per account: only runs while account_status.new_account
        is true, and flips it to false afterwards. Failing to flip the
        flag is logged but does not undo the trial.

        Returns:
            The trialing subscription, or None if not eligible or on failure
        """
        if not await self.is_new_account(user_id):
            logger.info(f"User {user_id} is not eligible for a trial")
            return None

        trial_days = self._settings.trial_duration_days
        try:
            trial_plan = await self._subscriptions.get_plan_by_name(TRIAL_PLAN)
            if trial_plan is None:
                logger.error(f"{TRIAL_PLAN.value} plan row is missing from subscription_plans")
                return None

            now = self._clock()
            await self._subscriptions.upsert_trial(
                user_id,
                plan_id=trial_plan.id,
                trial_start=now,
                trial_end=now + timedelta(days=trial_days),
            )
            await self._session.commit()
        except Exception as e:
            logger.error(f"Error activating trial for user {user_id}: {e}")
            await self._session.rollback()
            return None

        if not await self.mark_trial_consumed(user_id):
            logger.warning(f"Trial activated but account status not updated for user {user_id}")

        if await self._notifications.notify_trial_activated(user_id, TRIAL_PLAN, trial_days):
            await self._session.commit()

        logger.info(f"Activated {trial_days}-day {TRIAL_PLAN.value} trial for user {user_id}")
        return await self.get_subscription(user_id)

    # =========================================================================
    # Plan Changes
    # =========================================================================

    async def activate_plan(
        self,
        user_id: UserId,
        plan_name: Union[PlanName, str],
    ) -> Optional[Subscription]:
        """
        Put the user on a plan for one billing period starting now.

        Called once payment for the plan is confirmed; converts a trial to
        an active subscription. Free runs for the default subscription window.

        Raises:
            ValidationError: plan_name is not a known plan

        Returns:
            The active subscription, or None on failure
        """
        try:
            plan = PlanName(plan_name)
        except ValueError:
            raise ValidationError(f"Unknown plan: {plan_name}", details={"field": "plan_name"})

        try:
            plan_row = await self._subscriptions.get_plan_by_name(plan)
            if plan_row is None:
                logger.error(f"{plan.value} plan row is missing from subscription_plans")
                return None

            if plan == PlanName.FREE:
                period_days = self._settings.default_subscription_days
            else:
                period_days = BILLING_PERIOD_DAYS.get(
                    plan_row.billing_period, self._settings.default_subscription_days
                )
            now = self._clock()
            await self._subscriptions.upsert_active(
                user_id,
                plan_id=plan_row.id,
                period_start=now,
                period_end=now + timedelta(days=period_days),
            )
            await self._session.commit()
        except Exception as e:
            logger.error(f"Error activating {plan.value} for user {user_id}: {e}")
            await self._session.rollback()
            return None

        logger.info(f"Activated {plan.value} for user {user_id} ({period_days} days)")
        return await self.get_subscription(user_id)

    async def cancel_subscription(self, user_id: UserId, at_period_end: bool = True) -> bool:
        """
        Cancel the user's current subscription.

        at_period_end keeps access until current_period_end; otherwise the
        row is cancelled now and the user resolves to Free immediately.

        Returns:
            True if a current subscription was cancelled
        """
        try:
            updated = await self._subscriptions.cancel(user_id, at_period_end, self._clock())
            await self._session.commit()
        except Exception as e:
            logger.error(f"Error cancelling subscription for user {user_id}: {e}")
            await self._session.rollback()
            return False

        if not updated:
            logger.info(f"No current subscription to cancel for user {user_id}")
            return False
        logger.info(
            f"Cancelled subscription for user {user_id} "
            f"({'at period end' if at_period_end else 'immediately'})"
        )
        return True
