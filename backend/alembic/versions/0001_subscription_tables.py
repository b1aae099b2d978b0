"""Create subscription plans, user subscriptions and account status

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_subscription_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PLANS = [
    {
        "name": "Free",
        "price_cents": 0,
        "limits": {
            "events_created": 10, "events_joined": 10, "invite_people": 8,
            "ai_chat": 5, "ai_insights_overall": 5, "ai_insights_per_event": 5,
        },
        "features": {"fast_ai_access": False, "higher_ai_priority": False},
    },
    {
        "name": "Small Event Org",
        "price_cents": 15900,
        "limits": {
            "events_created": 30, "events_joined": 30, "invite_people": 30,
            "ai_chat": 30, "ai_insights_overall": 40, "ai_insights_per_event": 50,
        },
        "features": {"fast_ai_access": True, "higher_ai_priority": False},
    },
    {
        "name": "Large Event Org",
        "price_cents": 30000,
        "limits": {
            "events_created": -1, "events_joined": -1, "invite_people": -1,
            "ai_chat": 75, "ai_insights_overall": 85, "ai_insights_per_event": 85,
        },
        "features": {"fast_ai_access": True, "higher_ai_priority": True},
    },
]


def upgrade() -> None:
    """Create subscription tables, RLS policies and seed the plans."""

    op.create_table(
        'subscription_plans',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('limits', postgresql.JSONB),
        sa.Column('features', postgresql.JSONB),
        sa.Column('price_cents', sa.Integer, server_default='0', nullable=False),
        sa.Column('currency', sa.String(3), server_default='PHP', nullable=False),
        sa.Column('billing_period', sa.String(20), server_default='monthly', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'user_subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, unique=True, index=True),
        sa.Column(
            'plan_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('subscription_plans.id'),
            nullable=False,
        ),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),

        # Validity window
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),

        # Trial
        sa.Column('is_trial', sa.Boolean, server_default='false', nullable=False),
        sa.Column('trial_start', sa.DateTime(timezone=True)),
        sa.Column('trial_end', sa.DateTime(timezone=True)),

        sa.Column('cancel_at_period_end', sa.Boolean, server_default='false', nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'trialing', 'expired', 'cancelled')",
            name='ck_user_subscriptions_status',
        ),
    )

    # Expiry job scans by status and period end
    op.create_index(
        'ix_user_subscriptions_status_period_end',
        'user_subscriptions',
        ['status', 'current_period_end'],
    )

    op.create_table(
        'account_status',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, unique=True, index=True),
        sa.Column('new_account', sa.Boolean, server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Seed plan reference data
    plans_table = sa.table(
        'subscription_plans',
        sa.column('id', postgresql.UUID(as_uuid=True)),
        sa.column('name', sa.String),
        sa.column('limits', postgresql.JSONB),
        sa.column('features', postgresql.JSONB),
        sa.column('price_cents', sa.Integer),
    )
    op.bulk_insert(
        plans_table,
        [
            {
                "id": uuid.uuid4(),
                "name": plan["name"],
                "limits": plan["limits"],
                "features": plan["features"],
                "price_cents": plan["price_cents"],
            }
            for plan in PLANS
        ],
    )

    # RLS: plans are public reference data
    op.execute('ALTER TABLE subscription_plans ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Anyone can view plans"
        ON subscription_plans FOR SELECT
        USING (true)
    """)

    # RLS: users read their own subscription; writes go through the service role
    op.execute('ALTER TABLE user_subscriptions ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Users can view own subscription"
        ON user_subscriptions FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)
    op.execute("""
        CREATE POLICY "Service role manages subscriptions"
        ON user_subscriptions FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)

    op.execute('ALTER TABLE account_status ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Users can view own account status"
        ON account_status FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)
    op.execute("""
        CREATE POLICY "Service role manages account status"
        ON account_status FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    """Drop subscription tables."""

    op.execute('DROP POLICY IF EXISTS "Users can view own account status" ON account_status')
    op.execute('DROP POLICY IF EXISTS "Service role manages account status" ON account_status')
    op.execute('DROP POLICY IF EXISTS "Users can view own subscription" ON user_subscriptions')
    op.execute('DROP POLICY IF EXISTS "Service role manages subscriptions" ON user_subscriptions')
    op.execute('DROP POLICY IF EXISTS "Anyone can view plans" ON subscription_plans')

    op.drop_table('account_status')
    op.drop_index('ix_user_subscriptions_status_period_end', table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
    op.drop_table('subscription_plans')
