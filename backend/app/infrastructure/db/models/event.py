"""
Event Models

Tables written by the event-management flows. The subscription layer only
reads them: their row counts are the usage of events_created,
events_joined and invite_people.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import TimestampMixin, UUIDMixin, utcnow


class EventStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    DONE = "done"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    CONFIRMED = "confirmed"
    LEFT = "left"
    CANCELLED = "cancelled"


class Event(UUIDMixin, TimestampMixin, table=True):
    """An organizer's event."""

    __tablename__ = "events"

    created_by: UUID = Field(index=True, nullable=False)
    title: str = Field(max_length=255)
    category: Optional[str] = Field(default=None, max_length=100)
    date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    status: str = Field(default=EventStatus.UPCOMING.value, max_length=20, index=True)


class AttendanceRecord(UUIDMixin, table=True):
    """A user's membership in an event they joined."""

    __tablename__ = "attendance_records"

    event_id: UUID = Field(foreign_key="events.id", index=True)
    user_id: UUID = Field(index=True)
    status: str = Field(default=AttendanceStatus.CONFIRMED.value, max_length=20)
    joined_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    left_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class EventInvite(UUIDMixin, table=True):
    """Invite code generated by an organizer for one event."""

    __tablename__ = "event_invites"

    event_id: UUID = Field(foreign_key="events.id", index=True)
    created_by: UUID = Field(index=True)
    invite_code: str = Field(max_length=16, index=True)
    role: str = Field(default="attendee", max_length=20)
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class EventCreate(SQLModel):
    created_by: UUID
    title: str
    category: Optional[str] = None
    status: str = EventStatus.UPCOMING.value
