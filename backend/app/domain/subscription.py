"""
Subscription Domain Models

Domain models for subscription tiers and usage limits.
Enums, limit tables, DTOs, and the pure tier-resolution rules of the
subscription bounded context. Nothing in this module touches the database.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger(__name__)


UNLIMITED = -1


class PlanName(str, Enum):
    """Subscription tiers, keyed by the plan row's unique name."""
    FREE = "Free"
    SMALL_EVENT_ORG = "Small Event Org"
    LARGE_EVENT_ORG = "Large Event Org"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["PlanName"]:
        """
        Map a stored plan name to a tier.

        Accepts the canonical name, the snake_case slug used by billing
        ("small_event_org") and the legacy "Free Tier" label, ignoring case
        and surrounding whitespace. Returns None for anything else.
        """
        if not name:
            return None
        normalized = name.strip().lower().replace("_", " ")
        if normalized == "free tier":
            return cls.FREE
        for plan in cls:
            if plan.value.lower() == normalized:
                return plan
        return None


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "active"
    TRIALING = "trialing"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


CURRENT_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


class ActionType(str, Enum):
    """Limited action categories."""
    EVENTS_CREATED = "events_created"
    EVENTS_JOINED = "events_joined"
    INVITE_PEOPLE = "invite_people"
    AI_CHAT = "ai_chat"
    AI_INSIGHTS_OVERALL = "ai_insights_overall"
    AI_INSIGHTS_PER_EVENT = "ai_insights_per_event"


# Actions whose usage is counted per event rather than per account
EVENT_SCOPED_ACTIONS = frozenset({ActionType.AI_INSIGHTS_PER_EVENT})


class Feature(str, Enum):
    """Boolean plan features."""
    FAST_AI_ACCESS = "fast_ai_access"
    HIGHER_AI_PRIORITY = "higher_ai_priority"


# =============================================================================
# Limit Sets
# =============================================================================

class LimitSet(BaseModel):
    """Numeric limits per action plus feature flags. -1 means unlimited."""
    model_config = ConfigDict(frozen=True)

    events_created: int
    events_joined: int
    invite_people: int
    ai_chat: int
    ai_insights_overall: int
    ai_insights_per_event: int
    fast_ai_access: bool = False
    higher_ai_priority: bool = False

    def limit_for(self, action: ActionType) -> int:
        return getattr(self, action.value)

    def has_feature(self, feature: Feature) -> bool:
        return bool(getattr(self, feature.value))

    def as_limits(self) -> Dict[str, int]:
        return {action.value: self.limit_for(action) for action in ActionType}

    def as_features(self) -> Dict[str, bool]:
        return {feature.value: self.has_feature(feature) for feature in Feature}


PLAN_LIMITS: Dict[PlanName, LimitSet] = {
    PlanName.FREE: LimitSet(
        events_created=10,
        events_joined=10,
        invite_people=8,
        ai_chat=5,
        ai_insights_overall=5,
        ai_insights_per_event=5,
    ),
    PlanName.SMALL_EVENT_ORG: LimitSet(
        events_created=30,
        events_joined=30,
        invite_people=30,
        ai_chat=30,
        ai_insights_overall=40,
        ai_insights_per_event=50,
        fast_ai_access=True,
    ),
    PlanName.LARGE_EVENT_ORG: LimitSet(
        events_created=UNLIMITED,
        events_joined=UNLIMITED,
        invite_people=UNLIMITED,
        ai_chat=75,
        ai_insights_overall=85,
        ai_insights_per_event=85,
        fast_ai_access=True,
        higher_ai_priority=True,
    ),
}

# Artificial AI response delay per tier, in seconds
PLAN_AI_DELAY_SECONDS: Dict[PlanName, float] = {
    PlanName.FREE: 6.0,
    PlanName.SMALL_EVENT_ORG: 3.0,
    PlanName.LARGE_EVENT_ORG: 0.0,
}

# Monthly price in centavos (PHP)
PLAN_PRICE_CENTS: Dict[PlanName, int] = {
    PlanName.FREE: 0,
    PlanName.SMALL_EVENT_ORG: 15900,
    PlanName.LARGE_EVENT_ORG: 30000,
}
PLAN_CURRENCY = "PHP"

# Length of one paid period by plan billing_period
BILLING_PERIOD_DAYS: Dict[str, int] = {
    "monthly": 30,
    "yearly": 365,
}

TRIAL_PLAN = PlanName.SMALL_EVENT_ORG


def resolve_plan(plan_name: Union[PlanName, str, None]) -> PlanName:
    """Resolve a stored plan name to a tier, falling back to Free."""
    if isinstance(plan_name, PlanName):
        return plan_name
    plan = PlanName.parse(plan_name)
    if plan is None:
        if plan_name:
            logger.warning(f"Unknown plan name {plan_name!r}, using Free limits")
        return PlanName.FREE
    return plan


def resolve_limits(plan_name: Union[PlanName, str, None]) -> LimitSet:
    """
    Look up the limit set for a plan.

    Unknown plan names resolve to the Free plan's limits rather than
    raising, so an unresolvable plan never blocks a user outright.
    """
    return PLAN_LIMITS[resolve_plan(plan_name)]


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def within_limit(usage: int, limit: int) -> bool:
    """
    Check pre-action usage against a limit.

    The unlimited sentinel must be tested first: -1 would otherwise
    compare as "already exceeded" for every usage count.
    """
    if is_unlimited(limit):
        return True
    return usage < limit


def remaining_capacity(usage: int, limit: int) -> Optional[int]:
    """Remaining uses, or None when the limit is unlimited."""
    if is_unlimited(limit):
        return None
    return max(limit - usage, 0)


def ai_response_delay(plan_name: Union[PlanName, str, None]) -> float:
    return PLAN_AI_DELAY_SECONDS[resolve_plan(plan_name)]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# =============================================================================
# Domain Entities
# =============================================================================

class Subscription(BaseModel):
    """A user's (single) subscription row."""
    id: Optional[str] = None
    user_id: str
    plan_id: Optional[str] = None
    plan_name: PlanName = PlanName.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    is_trial: bool = False
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def is_current(self, now: Optional[datetime] = None) -> bool:
        """Active or trialing, and the validity window has not ended."""
        now = now or datetime.now(timezone.utc)
        if self.status not in CURRENT_STATUSES:
            return False
        if self.current_period_end is None:
            return True
        return as_utc(self.current_period_end) > now


# =============================================================================
# Request/Response DTOs
# =============================================================================

class ActionUsage(BaseModel):
    """Usage of one action against the resolved limit."""
    action_type: ActionType
    used: int = Field(ge=0)
    limit: int = Field(description="-1 means unlimited")
    remaining: Optional[int] = Field(default=None, description="None when unlimited")
    unlimited: bool = False
    allowed: bool


class UsageSummary(BaseModel):
    """Response DTO for a user's plan, limits and current usage."""
    user_id: str
    plan: PlanName
    status: SubscriptionStatus
    is_trial: bool = False
    trial_end: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    features: Dict[str, bool]
    ai_response_delay_seconds: float
    usage: Dict[ActionType, ActionUsage]


class PlanResponse(BaseModel):
    """Public plan catalogue entry."""
    name: PlanName
    price_cents: int
    currency: str
    limits: Dict[str, int]
    features: Dict[str, bool]
    ai_response_delay_seconds: float


class CancelSubscriptionRequest(BaseModel):
    """Cancel now, or keep access until the current period ends."""
    cancel_at_period_end: bool = True


class EnsureSubscriptionResponse(BaseModel):
    success: bool


class AccountStatusResponse(BaseModel):
    user_id: str
    new_account: bool


class ExpiryResult(BaseModel):
    """Outcome of one subscription-expiry run."""
    expired: int = 0
    warned: int = 0
    errors: int = 0
    ran_at: datetime
