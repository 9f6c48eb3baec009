"""add processed_webhook_events table

Revision ID: 0003_processed_webhook_events
Revises: 0002_saved_posts
Create Date: 2026-10-14

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0003_processed_webhook_events'
down_revision: Union[str, None] = '0002_saved_posts'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    )
    # Index for cleanup queries (delete events older than X days)
    op.create_index(
        'ix_processed_webhook_events_processed_at',
        'processed_webhook_events',
        ['processed_at'],
    )
    # Only the service role (webhook endpoint) touches the ledger
    op.execute('ALTER TABLE processed_webhook_events ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Service role manages webhook events"
        ON processed_webhook_events FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Service role manages webhook events" ON processed_webhook_events')
    op.drop_index('ix_processed_webhook_events_processed_at')
    op.drop_table('processed_webhook_events')
