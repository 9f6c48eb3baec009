"""Add saved_posts table

Revision ID: 0002_saved_posts
Revises: 0001_subscription_tables
Create Date: 2026-10-13

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0002_saved_posts'
down_revision: Union[str, None] = '0001_subscription_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'saved_posts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('platform', sa.String(32), nullable=False),
        sa.Column('post_text', sa.Text, nullable=False),
        sa.Column('image_url', sa.Text),
        sa.Column('tags', postgresql.ARRAY(sa.String), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_saved_posts_user_id', 'saved_posts', ['user_id'])
    op.create_index('ix_saved_posts_platform', 'saved_posts', ['platform'])
    # GIN index for tag containment filters
    op.create_index('ix_saved_posts_tags', 'saved_posts', ['tags'], postgresql_using='gin')

    op.execute('ALTER TABLE saved_posts ENABLE ROW LEVEL SECURITY')

    op.execute("""
        CREATE POLICY "Users manage own saved posts"
        ON saved_posts FOR ALL
        TO authenticated
        USING (user_id = auth.uid())
        WITH CHECK (user_id = auth.uid())
    """)
    op.execute("""
        CREATE POLICY "Service role manages saved posts"
        ON saved_posts FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Service role manages saved posts" ON saved_posts')
    op.execute('DROP POLICY IF EXISTS "Users manage own saved posts" ON saved_posts')
    op.drop_table('saved_posts')
