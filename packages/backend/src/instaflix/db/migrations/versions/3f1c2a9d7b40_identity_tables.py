"""Identity tables: users, links, legacy_migrations

Users are the credential store. Links only carry user_id, which holds a
legacy Supabase id until the migration tool rewrites it.

Revision ID: 3f1c2a9d7b40
Revises:
Create Date: 2026-10-19 09:12:44.102311
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('external_provider_id', sa.String(length=255), nullable=True),
        sa.Column('legacy_store_id', sa.String(length=255), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint(
            'password_hash IS NOT NULL OR external_provider_id IS NOT NULL',
            name='ck_users_has_credential',
        ),
        sa.CheckConstraint("role IN ('user', 'admin')", name='ck_users_role'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('external_provider_id'),
        sa.UniqueConstraint('legacy_store_id'),
    )

    op.create_table(
        'links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('tag', sa.String(length=50), nullable=False),
        sa.Column('caption', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_links_user_id', 'links', ['user_id'])
    op.create_index('ix_links_user_created', 'links', ['user_id', 'created_at'])

    op.create_table(
        'legacy_migrations',
        sa.Column('legacy_id', sa.String(length=255), nullable=False),
        sa.Column('principal_id', sa.Uuid(), nullable=False),
        sa.Column('links_rewritten', sa.Integer(), nullable=False),
        sa.Column('migrated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('legacy_id'),
    )


def downgrade() -> None:
    op.drop_table('legacy_migrations')
    op.drop_index('ix_links_user_created', table_name='links')
    op.drop_index('ix_links_user_id', table_name='links')
    op.drop_table('links')
    op.drop_table('users')
