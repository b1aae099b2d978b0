"""
Integration tests for the subscription expiry job.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

from sqlalchemy import select

from app.config.settings import Settings
from app.domain.subscription import PlanName, SubscriptionStatus
from app.infrastructure.db.models import Notification, NotificationType, UserSubscriptionModel
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.services.subscription_expiry_service import (
    SubscriptionExpiryService,
    run_subscription_expiry,
)
from app.infrastructure.services.subscription_resolver import SubscriptionResolver


TEST_SETTINGS = Settings(
    supabase_url="https://test-project.supabase.co",
    supabase_service_role_key="key",
)


async def add_subscription(session, plan: PlanName, period_end: datetime, **fields) -> str:
    user_id = uuid4()
    plan_row = await SubscriptionRepository(session).get_plan_by_name(plan)
    session.add(
        UserSubscriptionModel(
            user_id=user_id,
            plan_id=plan_row.id,
            status=fields.pop("status", SubscriptionStatus.ACTIVE.value),
            current_period_start=period_end - timedelta(days=30),
            current_period_end=period_end,
            **fields,
        )
    )
    await session.commit()
    return str(user_id)


async def notifications_for(session, user_id: str):
    result = await session.execute(
        select(Notification).where(Notification.user_id == UUID(user_id))
    )
    return result.scalars().all()


class TestExpireLapsed:

    async def test_expires_lapsed_paid_subscription(self, db_session):
        now = datetime.now(timezone.utc)
        user_id = await add_subscription(db_session, PlanName.SMALL_EVENT_ORG, now - timedelta(hours=1))

        result = await SubscriptionExpiryService(db_session, TEST_SETTINGS).run(now)

        assert result.expired == 1
        assert result.errors == 0
        subscription = await SubscriptionRepository(db_session).get_by_user_id(user_id)
        assert subscription.status == SubscriptionStatus.EXPIRED
        assert subscription.cancelled_at is None
        notes = await notifications_for(db_session, user_id)
        assert [n.type for n in notes] == [NotificationType.SUBSCRIPTION_EXPIRED.value]

    async def test_expired_trial_is_cancelled(self, db_session):
        now = datetime.now(timezone.utc)
        user_id = await add_subscription(
            db_session,
            PlanName.SMALL_EVENT_ORG,
            now - timedelta(minutes=5),
            status=SubscriptionStatus.TRIALING.value,
            is_trial=True,
            trial_start=now - timedelta(days=30, minutes=5),
            trial_end=now - timedelta(minutes=5),
        )

        await SubscriptionExpiryService(db_session, TEST_SETTINGS).run(now)

        subscription = await SubscriptionRepository(db_session).get_by_user_id(user_id)
        assert subscription.status == SubscriptionStatus.EXPIRED
        assert subscription.cancelled_at == now

    async def test_free_rows_are_never_expired(self, db_session):
        now = datetime.now(timezone.utc)
        user_id = await add_subscription(db_session, PlanName.FREE, now - timedelta(days=1))

        result = await SubscriptionExpiryService(db_session, TEST_SETTINGS).run(now)

        assert result.expired == 0
        subscription = await SubscriptionRepository(db_session).get_by_user_id(user_id)
        assert subscription.status == SubscriptionStatus.ACTIVE

    async def test_second_run_is_a_no_op(self, db_session):
        now = datetime.now(timezone.utc)
        user_id = await add_subscription(db_session, PlanName.LARGE_EVENT_ORG, now - timedelta(hours=1))

        first = await run_subscription_expiry(db_session, now, TEST_SETTINGS)
        second = await run_subscription_expiry(db_session, now + timedelta(minutes=1), TEST_SETTINGS)

        assert (first.expired, second.expired) == (1, 0)
        assert len(await notifications_for(db_session, user_id)) == 1

    async def test_expired_user_resolves_to_free(self, db_session):
        now = datetime.now(timezone.utc)
        user_id = await add_subscription(db_session, PlanName.LARGE_EVENT_ORG, now - timedelta(hours=1))

        await SubscriptionExpiryService(db_session, TEST_SETTINGS).run(now)

        resolver = SubscriptionResolver(db_session, settings=TEST_SETTINGS, clock=lambda: now)
        assert await resolver.get_active_plan(user_id) == PlanName.FREE

    async def test_one_failure_does_not_stop_the_run(self, db_session):
        now = datetime.now(timezone.utc)
        await add_subscription(db_session, PlanName.SMALL_EVENT_ORG, now - timedelta(hours=2))
        await add_subscription(db_session, PlanName.LARGE_EVENT_ORG, now - timedelta(hours=1))
        service = SubscriptionExpiryService(db_session, TEST_SETTINGS)
        real_mark = service._subscriptions.mark_expired
        calls = []

        async def flaky_mark(subscription, when):
            calls.append(subscription.id)
            if len(calls) == 1:
                raise RuntimeError("lock timeout")
            return await real_mark(subscription, when)

        service._subscriptions.mark_expired = flaky_mark

        result = await service.run(now)

        assert (result.expired, result.errors) == (1, 1)


class TestExpiryWarnings:

    async def test_warns_paid_subscription_ending_soon(self, db_session):
        now = datetime.now(timezone.utc)
        user_id = await add_subscription(
            db_session, PlanName.SMALL_EVENT_ORG, now + timedelta(days=3)
        )

        result = await SubscriptionExpiryService(db_session, TEST_SETTINGS).run(now)

        assert result.warned == 1
        notes = await notifications_for(db_session, user_id)
        assert len(notes) == 1
        assert notes[0].type == NotificationType.SUBSCRIPTION_EXPIRING.value
        assert notes[0].payload["days_remaining"] == 3
        assert notes[0].link_url == "/pricing"

    async def test_warns_once_per_window(self, db_session):
        now = datetime.now(timezone.utc)
        await add_subscription(db_session, PlanName.SMALL_EVENT_ORG, now + timedelta(days=3))
        service = SubscriptionExpiryService(db_session, TEST_SETTINGS)

        first = await service.run(now)
        second = await service.run(now + timedelta(hours=1))

        assert (first.warned, second.warned) == (1, 0)

    async def test_ignores_distant_and_free_and_trial(self, db_session):
        now = datetime.now(timezone.utc)
        await add_subscription(db_session, PlanName.SMALL_EVENT_ORG, now + timedelta(days=20))
        await add_subscription(db_session, PlanName.FREE, now + timedelta(days=2))
        await add_subscription(
            db_session,
            PlanName.SMALL_EVENT_ORG,
            now + timedelta(days=2),
            status=SubscriptionStatus.TRIALING.value,
            is_trial=True,
        )

        result = await SubscriptionExpiryService(db_session, TEST_SETTINGS).run(now)

        assert result.warned == 0

    async def test_notification_failure_counts_as_error(self, db_session):
        now = datetime.now(timezone.utc)
        await add_subscription(db_session, PlanName.LARGE_EVENT_ORG, now + timedelta(days=1))
        service = SubscriptionExpiryService(db_session, TEST_SETTINGS)
        service._notifier.notify_subscription_expiring = AsyncMock(return_value=False)

        result = await service.run(now)

        assert (result.warned, result.errors) == (0, 1)
