"""
Repository Layer for EventTria

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.base_repository import BaseRepository
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.db.repositories.account_status_repository import (
    AccountStatusRepository,
)
from app.infrastructure.db.repositories.usage_repository import UsageRepository
from app.infrastructure.db.repositories.notification_repository import (
    NotificationRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    # Repositories
    "SubscriptionRepository",
    "AccountStatusRepository",
    "UsageRepository",
    "NotificationRepository",
]
