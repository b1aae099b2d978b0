"""
AI Usage Models

Rows written by the AI chat and AI insight features; counted for the
ai_chat, ai_insights_overall and ai_insights_per_event limits.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field

from app.infrastructure.db.models.base import JSONType, UUIDMixin, utcnow


class AIChatMessage(UUIDMixin, table=True):
    """One user question sent to the event AI assistant."""

    __tablename__ = "ai_chat_messages"

    user_id: UUID = Field(index=True)
    event_id: Optional[UUID] = Field(default=None, foreign_key="events.id", index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class AnalyticsInsight(UUIDMixin, table=True):
    """A generated AI insight for one of the user's events."""

    __tablename__ = "analytics_insights"

    user_id: UUID = Field(index=True)
    event_id: Optional[UUID] = Field(default=None, foreign_key="events.id", index=True)
    insight_type: str = Field(default="summary", max_length=50)
    content: Optional[dict] = Field(default=None, sa_column=Column(JSONType))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
