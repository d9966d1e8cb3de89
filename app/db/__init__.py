from app.db.models import (
    Base, User, AuthSession, TelegramUser, Conversation, Message, ConversationContext,
)
from app.db.database import get_db, init_db, drop_db, async_session_maker, engine

__all__ = [
    "Base",
    "User",
    "AuthSession",
    "TelegramUser",
    "Conversation",
    "Message",
    "ConversationContext",
    # Database
    "get_db",
    "init_db",
    "drop_db",
    "async_session_maker",
    "engine",
]
