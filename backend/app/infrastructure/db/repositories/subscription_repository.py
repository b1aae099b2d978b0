"""
Subscription Repository

Data access layer for plans and user subscriptions.
Every write to user_subscriptions is an upsert keyed on user_id, so the
single-row-per-user invariant is enforced by the unique index rather than
by read-then-write logic.
"""

import logging
from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID, uuid4

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.repositories.base_repository import BaseRepository, insert_for
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.subscription import (
    SubscriptionPlanModel,
    UserSubscriptionModel,
)
from app.domain.subscription import (
    CURRENT_STATUSES,
    PLAN_CURRENCY,
    PLAN_LIMITS,
    PLAN_PRICE_CENTS,
    PlanName,
    Subscription,
    SubscriptionStatus,
    as_utc,
    resolve_plan,
)


logger = logging.getLogger(__name__)


def to_uuid(value: Union[str, UUID]) -> UUID:
    """Convert string IDs to UUID for PostgreSQL compatibility."""
    return value if isinstance(value, UUID) else UUID(value)


class SubscriptionRepository(BaseRepository[UserSubscriptionModel, UserSubscriptionModel]):
    """
    Repository for subscription data access.

    Maps rows to Subscription domain entities, joining the plan name in.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UserSubscriptionModel, session)

    # =========================================================================
    # Plan Queries
    # =========================================================================

    async def get_plan_by_name(self, name: PlanName) -> Optional[SubscriptionPlanModel]:
        """Get a plan row by its unique name."""
        stmt = select(SubscriptionPlanModel).where(SubscriptionPlanModel.name == name.value)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def sync_plans(self) -> int:
        """
        Upsert one row per plan from the in-code limit table.

        Returns:
            Number of plans written
        """
        now = utcnow()
        for plan, limits in PLAN_LIMITS.items():
            values = {
                "limits": limits.as_limits(),
                "features": limits.as_features(),
                "price_cents": PLAN_PRICE_CENTS[plan],
                "currency": PLAN_CURRENCY,
                "is_active": True,
                "updated_at": now,
            }
            stmt = (
                insert_for(self._session, SubscriptionPlanModel)
                .values(id=uuid4(), name=plan.value, created_at=now, **values)
                .on_conflict_do_update(index_elements=["name"], set_=values)
            )
            await self._session.execute(stmt)
        await self._session.flush()
        logger.info(f"Synced {len(PLAN_LIMITS)} subscription plans")
        return len(PLAN_LIMITS)

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def get_by_user_id(self, user_id: Union[str, UUID]) -> Optional[Subscription]:
        """
        Get the user's subscription row regardless of status.

        Args:
            user_id: Auth user ID

        Returns:
            Subscription domain model or None
        """
        stmt = (
            self._select_with_plan()
            .where(UserSubscriptionModel.user_id == to_uuid(user_id))
        )
        result = await self._session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return self._to_domain(row[0], row[1])

    async def get_current(
        self,
        user_id: Union[str, UUID],
        now: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        """
        Get the user's subscription only if it is active or trialing and
        its validity window has not ended.
        """
        now = now or utcnow()
        stmt = (
            self._select_with_plan()
            .where(
                UserSubscriptionModel.user_id == to_uuid(user_id),
                UserSubscriptionModel.status.in_([s.value for s in CURRENT_STATUSES]),
                or_(
                    UserSubscriptionModel.current_period_end.is_(None),
                    UserSubscriptionModel.current_period_end > now,
                ),
            )
        )
        result = await self._session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return self._to_domain(row[0], row[1])

    async def find_lapsed(self, now: datetime) -> List[Subscription]:
        """Paid or trial subscriptions still marked current whose window ended."""
        stmt = (
            self._select_with_plan()
            .where(
                UserSubscriptionModel.status.in_([s.value for s in CURRENT_STATUSES]),
                UserSubscriptionModel.current_period_end <= now,
                SubscriptionPlanModel.name != PlanName.FREE.value,
            )
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model, name) for model, name in result.all()]

    async def find_expiring(self, now: datetime, until: datetime) -> List[Subscription]:
        """Paid or trial subscriptions ending in (now, until]."""
        stmt = (
            self._select_with_plan()
            .where(
                UserSubscriptionModel.status.in_([s.value for s in CURRENT_STATUSES]),
                UserSubscriptionModel.current_period_end > now,
                UserSubscriptionModel.current_period_end <= until,
                SubscriptionPlanModel.name != PlanName.FREE.value,
            )
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model, name) for model, name in result.all()]

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def insert_default(
        self,
        user_id: Union[str, UUID],
        plan_id: UUID,
        period_start: datetime,
        period_end: datetime,
    ) -> bool:
        """
        Insert a subscription row unless the user already has one.

        Uses INSERT .. ON CONFLICT (user_id) DO NOTHING so two concurrent
        first requests cannot both create a row.

        Returns:
            True if this call inserted the row, False if one already existed
        """
        now = utcnow()
        stmt = self._insert().values(
            id=uuid4(),
            user_id=to_uuid(user_id),
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE.value,
            current_period_start=period_start,
            current_period_end=period_end,
            is_trial=False,
            cancel_at_period_end=False,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        result = await self._session.execute(stmt)
        await self._session.flush()
        return (result.rowcount or 0) > 0

    async def upsert_trial(
        self,
        user_id: Union[str, UUID],
        plan_id: UUID,
        trial_start: datetime,
        trial_end: datetime,
    ) -> None:
        """Create or replace the user's row with a trialing subscription."""
        values = {
            "plan_id": plan_id,
            "status": SubscriptionStatus.TRIALING.value,
            "current_period_start": trial_start,
            "current_period_end": trial_end,
            "is_trial": True,
            "trial_start": trial_start,
            "trial_end": trial_end,
            "cancel_at_period_end": True,
            "cancelled_at": None,
            "updated_at": trial_start,
        }
        stmt = self._insert().values(
            id=uuid4(),
            user_id=to_uuid(user_id),
            created_at=trial_start,
            **values,
        )
        stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=values)
        await self._session.execute(stmt)
        await self._session.flush()

    async def upsert_active(
        self,
        user_id: Union[str, UUID],
        plan_id: UUID,
        period_start: datetime,
        period_end: datetime,
    ) -> None:
        """
        Create or replace the user's row with an active paid-up period.

        Converting a trial keeps trial_start/trial_end as a record of the
        trial but clears is_trial and any pending cancellation.
        """
        values = {
            "plan_id": plan_id,
            "status": SubscriptionStatus.ACTIVE.value,
            "current_period_start": period_start,
            "current_period_end": period_end,
            "is_trial": False,
            "cancel_at_period_end": False,
            "cancelled_at": None,
            "updated_at": period_start,
        }
        stmt = self._insert().values(
            id=uuid4(),
            user_id=to_uuid(user_id),
            created_at=period_start,
            **values,
        )
        stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=values)
        await self._session.execute(stmt)
        await self._session.flush()

    async def cancel(
        self,
        user_id: Union[str, UUID],
        at_period_end: bool,
        now: datetime,
    ) -> int:
        """
        Cancel the user's current subscription.

        With at_period_end the row stays in its status until the expiry job
        picks it up; otherwise it is cancelled immediately.

        Returns:
            Number of rows updated (0 when nothing current to cancel)
        """
        if at_period_end:
            values = {"cancel_at_period_end": True, "updated_at": now}
        else:
            values = {
                "status": SubscriptionStatus.CANCELLED.value,
                "cancel_at_period_end": False,
                "cancelled_at": now,
                "updated_at": now,
            }
        stmt = (
            update(UserSubscriptionModel)
            .where(
                UserSubscriptionModel.user_id == to_uuid(user_id),
                UserSubscriptionModel.status.in_([s.value for s in CURRENT_STATUSES]),
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0

    async def mark_expired(self, subscription: Subscription, now: datetime) -> int:
        """
        Move one subscription to expired.

        Guarded on the current status so a second run is a no-op.
        """
        values = {
            "status": SubscriptionStatus.EXPIRED.value,
            "updated_at": now,
        }
        if subscription.is_trial:
            values["cancelled_at"] = now
        stmt = (
            update(UserSubscriptionModel)
            .where(
                UserSubscriptionModel.id == to_uuid(subscription.id),
                UserSubscriptionModel.status.in_([s.value for s in CURRENT_STATUSES]),
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount or 0

    def _select_with_plan(self):
        """
        Subscription rows joined with their plan name.

        Rows are refreshed from the database on every read, since the
        upserts above bypass the identity map.
        """
        return (
            select(UserSubscriptionModel, SubscriptionPlanModel.name)
            .join(SubscriptionPlanModel, SubscriptionPlanModel.id == UserSubscriptionModel.plan_id)
            .execution_options(populate_existing=True)
        )

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: UserSubscriptionModel, plan_name: Optional[str]) -> Subscription:
        """Convert database row to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=str(model.user_id),
            plan_id=str(model.plan_id),
            plan_name=resolve_plan(plan_name),
            status=SubscriptionStatus(model.status),
            current_period_start=as_utc(model.current_period_start),
            current_period_end=as_utc(model.current_period_end),
            is_trial=model.is_trial or False,
            trial_start=as_utc(model.trial_start),
            trial_end=as_utc(model.trial_end),
            cancel_at_period_end=model.cancel_at_period_end or False,
            cancelled_at=as_utc(model.cancelled_at),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )
