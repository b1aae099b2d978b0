"""
Subscription Database Models

SQLModel tables for plans, user subscriptions and the account-status flag.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, DateTime
from sqlmodel import Field

from app.infrastructure.db.models.base import JSONType, TimestampMixin, UUIDMixin


class SubscriptionPlanModel(UUIDMixin, TimestampMixin, table=True):
    """
    Plan reference data.

    Maps to the 'subscription_plans' table. Seeded by migration; the
    limits column mirrors the in-code limit table for reporting.
    """

    __tablename__ = "subscription_plans"

    name: str = Field(unique=True, index=True, max_length=100)
    limits: Optional[dict] = Field(default=None, sa_column=Column(JSONType))
    features: Optional[dict] = Field(default=None, sa_column=Column(JSONType))
    price_cents: int = Field(default=0)
    currency: str = Field(default="PHP", max_length=3)
    billing_period: str = Field(default="monthly", max_length=20)
    is_active: bool = Field(default=True)


class UserSubscriptionModel(UUIDMixin, TimestampMixin, table=True):
    """
    One subscription row per user.

    The unique index on user_id is what makes concurrent default
    provisioning safe: every write is an upsert keyed on it.
    """

    __tablename__ = "user_subscriptions"

    user_id: UUID = Field(unique=True, index=True, nullable=False)
    plan_id: UUID = Field(foreign_key="subscription_plans.id", nullable=False)

    status: str = Field(default="active", max_length=20)

    current_period_start: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    current_period_end: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )

    # Trial window
    is_trial: bool = Field(default=False)
    trial_start: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    trial_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    cancel_at_period_end: bool = Field(default=False)
    cancelled_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class AccountStatusModel(UUIDMixin, TimestampMixin, table=True):
    """Tracks whether an account is still eligible for the one-time trial."""

    __tablename__ = "account_status"

    user_id: UUID = Field(unique=True, index=True, nullable=False)
    new_account: bool = Field(default=True)

