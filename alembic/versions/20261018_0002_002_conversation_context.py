"""Add assistant context to profiles and conversations

Revision ID: 002_conversation_context
Revises: 001_initial
Create Date: 2026-10-18

- users gains the base context fields (role, stage, niche, region)
- conversation_context holds per-conversation overrides, one row per conversation
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_conversation_context'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('users') as batch:
        batch.add_column(sa.Column('user_role', sa.String(50), nullable=True))
        batch.add_column(sa.Column('business_stage', sa.String(50), nullable=True))
        batch.add_column(sa.Column('business_niche', sa.String(100), nullable=True))
        batch.add_column(sa.Column('region', sa.String(100), nullable=True))

    op.create_table(
        'conversation_context',
        sa.Column(
            'conversation_id', sa.String(36),
            sa.ForeignKey('conversations.id', ondelete='CASCADE'), primary_key=True,
        ),
        sa.Column('user_role', sa.String(50), nullable=True),
        sa.Column('business_stage', sa.String(50), nullable=True),
        sa.Column('goal', sa.String(100), nullable=True),
        sa.Column('urgency', sa.String(20), nullable=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('business_niche', sa.String(100), nullable=True),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('conversation_context')

    with op.batch_alter_table('users') as batch:
        batch.drop_column('region')
        batch.drop_column('business_niche')
        batch.drop_column('business_stage')
        batch.drop_column('user_role')
