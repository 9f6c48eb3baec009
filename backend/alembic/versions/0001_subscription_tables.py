"""Create plan, subscription and usage tables

Revision ID: 0001_subscription_tables
Revises:
Create Date: 2026-10-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_subscription_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscription_plans, user_subscriptions and user_post_usage."""

    op.create_table(
        'subscription_plans',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('price', sa.Integer, nullable=False, server_default='0'),
        # -1 means unlimited
        sa.Column('monthly_post_limit', sa.Integer, nullable=False, server_default='0'),
        sa.Column('stripe_price_id', sa.String(255)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'user_subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('subscription_plan_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('subscription_plans.id'), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='incomplete'),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('stripe_subscription_id', sa.String(255)),

        # Billing period dates
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),
        sa.Column('cancel_at_period_end', sa.Boolean, nullable=False, server_default='false'),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_user_subscriptions_user_id', 'user_subscriptions', ['user_id'], unique=True)
    op.create_index('ix_user_subscriptions_status', 'user_subscriptions', ['status'])
    op.create_index('ix_user_subscriptions_stripe_customer_id', 'user_subscriptions', ['stripe_customer_id'])
    op.create_index(
        'ix_user_subscriptions_stripe_subscription_id',
        'user_subscriptions',
        ['stripe_subscription_id'],
        unique=True,
    )

    op.create_table(
        'user_post_usage',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reset_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('count >= 0', name='ck_user_post_usage_count_non_negative'),
    )
    op.create_index('ix_user_post_usage_user_id', 'user_post_usage', ['user_id'], unique=True)

    # Enable RLS
    for table in ('subscription_plans', 'user_subscriptions', 'user_post_usage'):
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')

    # RLS Policy: Plans are public
    op.execute("""
        CREATE POLICY "Anyone can view plans"
        ON subscription_plans FOR SELECT
        USING (true)
    """)

    # RLS Policy: Users can only see their own rows
    op.execute("""
        CREATE POLICY "Users can view own subscription"
        ON user_subscriptions FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)
    op.execute("""
        CREATE POLICY "Users can view own usage"
        ON user_post_usage FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)

    # RLS Policy: Service role manages everything (API + webhooks)
    for table in ('subscription_plans', 'user_subscriptions', 'user_post_usage'):
        op.execute(f"""
            CREATE POLICY "Service role manages {table}"
            ON {table} FOR ALL
            TO service_role
            USING (true)
            WITH CHECK (true)
        """)


def downgrade() -> None:
    """Drop subscription tables."""

    # Drop policies
    for table in ('subscription_plans', 'user_subscriptions', 'user_post_usage'):
        op.execute(f'DROP POLICY IF EXISTS "Service role manages {table}" ON {table}')
    op.execute('DROP POLICY IF EXISTS "Users can view own usage" ON user_post_usage')
    op.execute('DROP POLICY IF EXISTS "Users can view own subscription" ON user_subscriptions')
    op.execute('DROP POLICY IF EXISTS "Anyone can view plans" ON subscription_plans')

    # Drop tables
    op.drop_table('user_post_usage')
    op.drop_table('user_subscriptions')
    op.drop_table('subscription_plans')
