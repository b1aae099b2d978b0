"""
Notification Repository

Extends BaseRepository with the de-duplication lookup for warnings.
"""

from datetime import datetime
from typing import Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.db.repositories.subscription_repository import to_uuid
from app.infrastructure.db.models.notification import (
    Notification,
    NotificationCreate,
    NotificationType,
)


class NotificationRepository(BaseRepository[Notification, NotificationCreate]):
    """Repository for in-app notifications."""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def exists_since(
        self,
        user_id: Union[str, UUID],
        notification_type: NotificationType,
        since: datetime,
    ) -> bool:
        """True if the user already got this kind of notification at or after since."""
        stmt = (
            select(Notification.id)
            .where(
                Notification.user_id == to_uuid(user_id),
                Notification.type == notification_type.value,
                Notification.created_at >= since,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.first() is not None
