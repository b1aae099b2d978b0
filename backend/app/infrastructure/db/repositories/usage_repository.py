"""
Usage Repository

Usage is not stored as a counter: it is the live count of the domain rows
each limited action creates. Deleting one of those rows therefore frees
the capacity it used.
"""

from typing import Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.subscription import ActionType
from app.infrastructure.db.repositories.subscription_repository import to_uuid
from app.infrastructure.db.models.event import (
    AttendanceRecord,
    AttendanceStatus,
    Event,
    EventInvite,
    EventStatus,
)
from app.infrastructure.db.models.ai_usage import AIChatMessage, AnalyticsInsight


class UsageRepository:
    """Counts prior uses of each limited action for one user."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def count(
        self,
        user_id: Union[str, UUID],
        action: ActionType,
        event_id: Optional[Union[str, UUID]] = None,
    ) -> int:
        """
        Count rows representing prior uses of an action.

        Args:
            user_id: Auth user ID
            action: Limited action category
            event_id: Optional event scope; ignored for account-wide actions

        Returns:
            Number of matching rows
        """
        user_uuid = to_uuid(user_id)
        event_uuid = to_uuid(event_id) if event_id else None

        if action == ActionType.EVENTS_CREATED:
            stmt = select(func.count(Event.id)).where(
                Event.created_by == user_uuid,
                Event.status != EventStatus.CANCELLED.value,
            )
        elif action == ActionType.EVENTS_JOINED:
            stmt = select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.user_id == user_uuid,
                AttendanceRecord.status == AttendanceStatus.CONFIRMED.value,
            )
        elif action == ActionType.INVITE_PEOPLE:
            stmt = select(func.count(EventInvite.id)).where(EventInvite.created_by == user_uuid)
            if event_uuid:
                stmt = stmt.where(EventInvite.event_id == event_uuid)
        elif action == ActionType.AI_CHAT:
            stmt = select(func.count(AIChatMessage.id)).where(AIChatMessage.user_id == user_uuid)
            if event_uuid:
                stmt = stmt.where(AIChatMessage.event_id == event_uuid)
        elif action == ActionType.AI_INSIGHTS_OVERALL:
            stmt = select(func.count(AnalyticsInsight.id)).where(
                AnalyticsInsight.user_id == user_uuid
            )
        elif action == ActionType.AI_INSIGHTS_PER_EVENT:
            # Without an event scope this degrades to the account-wide count,
            # which is never lower than any single event's count.
            stmt = select(func.count(AnalyticsInsight.id)).where(
                AnalyticsInsight.user_id == user_uuid
            )
            if event_uuid:
                stmt = stmt.where(AnalyticsInsight.event_id == event_uuid)
        else:
            raise ValueError(f"Unsupported action type: {action}")

        result = await self._session.execute(stmt)
        return result.scalar_one() or 0
