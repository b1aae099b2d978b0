"""
Notification Model

In-app notifications shown in the user's notification centre.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import ConfigDict
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import JSONType, UUIDMixin, utcnow


class NotificationType(str, Enum):
    TRIAL_ACTIVATED = "trial_activated"
    SUBSCRIPTION_PURCHASED = "subscription_purchased"
    SUBSCRIPTION_EXPIRING = "subscription_expiring"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_EXPIRED = "subscription_expired"


class Notification(UUIDMixin, table=True):
    """A single notification for one user."""

    __tablename__ = "notifications"

    user_id: UUID = Field(index=True)
    type: str = Field(max_length=50)
    title: str = Field(max_length=255)
    message: str
    # "metadata" is reserved on declarative classes
    payload: Optional[dict] = Field(
        default=None, sa_column=Column("metadata", JSONType)
    )
    link_url: Optional[str] = Field(default=None, max_length=255)
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class NotificationCreate(SQLModel):
    """Schema for creating a notification."""
    model_config = ConfigDict(use_enum_values=True)

    user_id: UUID
    type: NotificationType
    title: str
    message: str
    payload: Optional[dict] = None
    link_url: Optional[str] = None
