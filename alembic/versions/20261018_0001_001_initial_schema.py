"""Initial schema - accounts, sessions, telegram identities, conversations

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

telegram_users.user_id carries a UNIQUE constraint: at most one Telegram
account may be linked to a given native account.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Native accounts
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('business_type', sa.String(100), nullable=False, server_default='general'),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('nickname', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('gender', sa.String(20), nullable=True),
        sa.Column('profile_picture', sa.String(500), nullable=True),
        sa.Column('telegram_username', sa.String(100), nullable=True),
        sa.Column('telegram_handle_key', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_telegram_handle_key', 'users', ['telegram_handle_key'])

    # Bearer sessions
    op.create_table(
        'sessions',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_sessions_user_id', 'sessions', ['user_id'])

    # Telegram accounts, optionally linked one-to-one to a native account
    op.create_table(
        'telegram_users',
        sa.Column('telegram_id', sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column('telegram_username', sa.String(100), nullable=True),
        sa.Column('telegram_handle_key', sa.String(100), nullable=True),
        sa.Column('first_name', sa.String(200), nullable=True),
        sa.Column('last_name', sa.String(200), nullable=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('last_seen_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', name='uq_telegram_users_user_id'),
    )
    op.create_index('ix_telegram_users_telegram_handle_key', 'telegram_users', ['telegram_handle_key'])

    # Conversations are filed under a resolved owner id, which may be a placeholder
    op.create_table(
        'conversations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(64), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('channel', sa.String(20), nullable=False, server_default='app'),
        sa.Column('message_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_conversations_owner_id', 'conversations', ['owner_id'])
    op.create_index('ix_conversations_owner_created', 'conversations', ['owner_id', 'created_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'conversation_id', sa.String(36),
            sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])


def downgrade() -> None:
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_table('telegram_users')
    op.drop_table('sessions')
    op.drop_table('users')
