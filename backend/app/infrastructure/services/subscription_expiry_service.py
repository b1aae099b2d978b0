"""
Subscription Expiry Service

Periodic job that moves lapsed paid and trial subscriptions to expired and
warns users whose subscription ends soon. Runs from the cron endpoint or
scripts/run_subscription_expiry.py.

Expired users fall back to Free limits on their next lookup because the
resolver only honours active/trialing rows whose window is still open.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, get_settings
from app.domain.subscription import ExpiryResult
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.notification import NotificationType
from app.infrastructure.db.repositories.notification_repository import NotificationRepository
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.services.subscription_notification_service import (
    SubscriptionNotificationService,
)


logger = logging.getLogger(__name__)


class SubscriptionExpiryService:
    """
    Expires lapsed subscriptions and sends expiry warnings.

    Safe to run repeatedly: expiry is guarded on the row still being
    current, and a user is warned at most once per warning window.
    Free rows are never expired.
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self._subscriptions = SubscriptionRepository(session)
        self._notifications = NotificationRepository(session)
        self._notifier = SubscriptionNotificationService(session)

    async def run(self, now: Optional[datetime] = None) -> ExpiryResult:
        now = now or utcnow()
        result = ExpiryResult(ran_at=now)

        await self._expire_lapsed(now, result)
        await self._warn_expiring(now, result)

        logger.info(
            f"Subscription expiry run at {now.isoformat()}: "
            f"{result.expired} expired, {result.warned} warned, {result.errors} errors"
        )
        return result

    async def _expire_lapsed(self, now: datetime, result: ExpiryResult) -> None:
        lapsed = await self._subscriptions.find_lapsed(now)
        logger.info(f"Found {len(lapsed)} lapsed subscriptions")

        for subscription in lapsed:
            try:
                updated = await self._subscriptions.mark_expired(subscription, now)
                await self.session.commit()
            except Exception as e:
                logger.error(f"Failed to expire subscription {subscription.id}: {e}")
                await self.session.rollback()
                result.errors += 1
                continue

            if not updated:
                continue

            result.expired += 1
            kind = "trial" if subscription.is_trial else "subscription"
            logger.info(
                f"Expired {subscription.plan_name.value} {kind} for user {subscription.user_id}"
            )
            if await self._notifier.notify_subscription_expired(
                subscription.user_id, subscription.plan_name
            ):
                await self.session.commit()

    async def _warn_expiring(self, now: datetime, result: ExpiryResult) -> None:
        window = timedelta(days=self.settings.expiry_warning_days)
        expiring = await self._subscriptions.find_expiring(now, now + window)
        logger.info(f"Found {len(expiring)} subscriptions expiring within {window.days} days")

        for subscription in expiring:
            # Trials announce their own end date on activation
            if subscription.is_trial:
                continue

            ends_at = subscription.current_period_end
            try:
                already_warned = await self._notifications.exists_since(
                    subscription.user_id,
                    NotificationType.SUBSCRIPTION_EXPIRING,
                    since=ends_at - window,
                )
            except Exception as e:
                logger.error(f"Failed to check warnings for user {subscription.user_id}: {e}")
                await self.session.rollback()
                result.errors += 1
                continue

            if already_warned:
                continue

            days_left = max(1, math.ceil((ends_at - now).total_seconds() / 86400))
            if await self._notifier.notify_subscription_expiring(
                subscription.user_id, subscription.plan_name, days_left
            ):
                await self.session.commit()
                result.warned += 1
            else:
                result.errors += 1


async def run_subscription_expiry(
    session: AsyncSession,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> ExpiryResult:
    """Run one expiry pass on the given session."""
    return await SubscriptionExpiryService(session, settings).run(now)
