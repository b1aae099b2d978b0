"""
Subscription Notification Service

Creates in-app notifications for subscription lifecycle events.
Notification failures are logged and reported as False; they never fail
the operation that triggered them. Callers commit the triggering change
first, since a failed insert rolls the session back.
"""

import logging
from typing import Any, Dict, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import PlanName
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.notification import NotificationCreate, NotificationType
from app.infrastructure.db.repositories.notification_repository import NotificationRepository
from app.infrastructure.db.repositories.subscription_repository import to_uuid


logger = logging.getLogger(__name__)


class SubscriptionNotificationService:
    """Writes subscription-related notifications for a user."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._repo = NotificationRepository(session)

    async def _create(
        self,
        user_id: Union[str, UUID],
        notification_type: NotificationType,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
        link_url: Optional[str] = None,
    ) -> bool:
        try:
            await self._repo.create(
                NotificationCreate(
                    user_id=to_uuid(user_id),
                    type=notification_type,
                    title=title,
                    message=message,
                    payload=payload or {},
                    link_url=link_url,
                )
            )
            return True
        except Exception as e:
            logger.error(f"Failed to create {notification_type.value} notification for {user_id}: {e}")
            await self._session.rollback()
            return False

    async def notify_trial_activated(
        self,
        user_id: Union[str, UUID],
        plan: PlanName,
        trial_days: int,
    ) -> bool:
        return await self._create(
            user_id,
            NotificationType.TRIAL_ACTIVATED,
            title="Free Trial Activated!",
            message=(
                f"Your {trial_days}-day free trial for {plan.value} has been activated! "
                f"Enjoy premium features for the next {trial_days} days."
            ),
            payload={
                "plan_name": plan.value,
                "trial_duration_days": trial_days,
                "activated_at": utcnow().isoformat(),
            },
        )

    async def notify_subscription_expiring(
        self,
        user_id: Union[str, UUID],
        plan: PlanName,
        days_left: int,
    ) -> bool:
        return await self._create(
            user_id,
            NotificationType.SUBSCRIPTION_EXPIRING,
            title="Subscription Expiring Soon",
            message=(
                f"Your {plan.value} subscription will expire in {days_left} days. "
                "Renew now to continue enjoying premium features."
            ),
            payload={
                "plan_name": plan.value,
                "days_remaining": days_left,
                "warning_date": utcnow().isoformat(),
            },
            link_url="/pricing",
        )

    async def notify_subscription_expired(
        self,
        user_id: Union[str, UUID],
        plan: PlanName,
    ) -> bool:
        return await self._create(
            user_id,
            NotificationType.SUBSCRIPTION_EXPIRED,
            title="Subscription Expired",
            message=(
                f"Your {plan.value} subscription has expired. You've been moved to the "
                "Free tier. Upgrade anytime to regain premium features."
            ),
            payload={
                "plan_name": plan.value,
                "expired_at": utcnow().isoformat(),
            },
        )
