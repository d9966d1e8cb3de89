"""
Database models for the Business Assistant API

Two identity namespaces share one store:
- users: native app accounts (email/password)
- telegram_users: bot-platform accounts, optionally linked one-to-one to a user
Conversations are filed under a resolved owner id (see ownership_resolver);
conversation_context holds optional per-conversation assistant context.
"""

from datetime import datetime
from typing import Optional, List
import uuid

from sqlalchemy import (
    String, Text, DateTime, Integer, BigInteger, Boolean, ForeignKey, Index
)
from sqlalchemy.orm import relationship, Mapped, mapped_column, declarative_base

Base = declarative_base()


class User(Base):
    """Native account created by the app's registration flow"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)  # stored lower-cased
    hashed_password: Mapped[str] = mapped_column(String(255))

    # Profile
    business_type: Mapped[str] = mapped_column(String(100), default="general")
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    nickname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    profile_picture: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Telegram handle as typed by the user, plus its normalized comparison key
    telegram_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    telegram_handle_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Base assistant context, overridden per conversation
    user_role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    business_stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    business_niche: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sessions: Mapped[List["AuthSession"]] = relationship("AuthSession", back_populates="user")


class AuthSession(Base):
    """Opaque bearer session for a native account. Never mutated after insert."""
    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="sessions")


class TelegramUser(Base):
    """Bot-platform account. user_id is the one-to-one link to a native account."""
    __tablename__ = "telegram_users"

    telegram_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    telegram_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    telegram_handle_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # UNIQUE: at most one bot account may target a given user (NULLs are not compared)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def is_linked(self) -> bool:
        return self.user_id is not None


class Conversation(Base):
    """Chat thread filed under a resolved owner id (users.id or a telegram placeholder)"""
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Surface the conversation was started from: app, telegram
    channel: Mapped[str] = mapped_column(String(20), default="app")

    message_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    messages: Mapped[List["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_conversations_owner_created", "owner_id", "created_at"),
    )


class Message(Base):
    """Individual message in a conversation"""
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(20))  # "user", "assistant"
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")


class ConversationContext(Base):
    """Assistant context stored for one conversation. NULL fields fall back to the owner's profile."""
    __tablename__ = "conversation_context"

    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    user_role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # owner, marketer, accountant, beginner
    business_stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # startup, stable, scaling
    goal: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    urgency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # urgent, normal, planning
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    business_niche: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
