"""
SQLModel ORM Models for EventTria

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    JSONType,
    TimestampMixin,
    UUIDMixin,
)
from app.infrastructure.db.models.subscription import (
    SubscriptionPlanModel,
    UserSubscriptionModel,
    AccountStatusModel,
)
from app.infrastructure.db.models.event import (
    Event,
    EventCreate,
    EventStatus,
    AttendanceRecord,
    AttendanceStatus,
    EventInvite,
)
from app.infrastructure.db.models.ai_usage import AIChatMessage, AnalyticsInsight
from app.infrastructure.db.models.notification import (
    Notification,
    NotificationCreate,
    NotificationType,
)


__all__ = [
    # Base
    "JSONType",
    "TimestampMixin",
    "UUIDMixin",
    # Subscriptions
    "SubscriptionPlanModel",
    "UserSubscriptionModel",
    "AccountStatusModel",
    # Usage sources
    "Event",
    "EventCreate",
    "EventStatus",
    "AttendanceRecord",
    "AttendanceStatus",
    "EventInvite",
    "AIChatMessage",
    "AnalyticsInsight",
    # Notifications
    "Notification",
    "NotificationCreate",
    "NotificationType",
]
