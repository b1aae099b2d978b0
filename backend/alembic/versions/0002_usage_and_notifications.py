"""Create usage-source tables and notifications

Revision ID: 0002
Revises: 0001_subscription_tables
Create Date: 2026-10-19

Events, attendance, invites and AI rows are what the limit checks count.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0002_usage_and_notifications'
down_revision: Union[str, None] = '0001_subscription_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


OWNED_TABLES = {
    'events': 'created_by',
    'attendance_records': 'user_id',
    'event_invites': 'created_by',
    'ai_chat_messages': 'user_id',
    'analytics_insights': 'user_id',
    'notifications': 'user_id',
}


def upgrade() -> None:
    op.create_table(
        'events',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100)),
        sa.Column('date', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(20), server_default='upcoming', nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'attendance_records',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'event_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('events.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('status', sa.String(20), server_default='confirmed', nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('left_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'event_invites',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'event_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('events.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('invite_code', sa.String(16), nullable=False, index=True),
        sa.Column('role', sa.String(20), server_default='attendee', nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'ai_chat_messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            'event_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('events.id', ondelete='CASCADE'),
            index=True,
        ),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'analytics_insights',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            'event_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('events.id', ondelete='CASCADE'),
            index=True,
        ),
        sa.Column('insight_type', sa.String(50), server_default='summary', nullable=False),
        sa.Column('content', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('metadata', postgresql.JSONB),
        sa.Column('link_url', sa.String(255)),
        sa.Column('is_read', sa.Boolean, server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Expiry warnings look up the latest notification of a type per user
    op.create_index(
        'ix_notifications_user_type_created',
        'notifications',
        ['user_id', 'type', 'created_at'],
    )

    # RLS: each user sees only their own rows
    for table, owner_column in OWNED_TABLES.items():
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        op.execute(f"""
            CREATE POLICY {table}_select_own ON {table}
            FOR SELECT
            TO authenticated
            USING ({owner_column} = auth.uid())
        """)
        op.execute(f"""
            CREATE POLICY {table}_service_role ON {table}
            FOR ALL
            TO service_role
            USING (true)
            WITH CHECK (true)
        """)


def downgrade() -> None:
    for table in OWNED_TABLES:
        op.execute(f'DROP POLICY IF EXISTS {table}_select_own ON {table}')
        op.execute(f'DROP POLICY IF EXISTS {table}_service_role ON {table}')

    op.drop_index('ix_notifications_user_type_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('analytics_insights')
    op.drop_table('ai_chat_messages')
    op.drop_table('event_invites')
    op.drop_table('attendance_records')
    op.drop_table('events')
