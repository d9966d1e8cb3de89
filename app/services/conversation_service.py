"""
Conversation store - durable chat history keyed by resolved owner id

The database is the source of truth. ConversationHistoryCache keeps recent
``(role, content)`` history per conversation in process memory so prompt
building does not hit the database on every turn; it is write-through,
bounded, and expires entries after a TTL so other instances' writes
become visible.
"""

import time
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import Conversation, ConversationContext, Message
from app.services.exceptions import ConversationNotFoundError

TITLE_MAX_CHARS = 80

HistoryEntry = Tuple[str, str]


class ConversationHistoryCache:
    def __init__(self, ttl_seconds: float, max_conversations: int):
        self.ttl_seconds = ttl_seconds
        self.max_conversations = max_conversations
        self._entries: "OrderedDict[str, Tuple[float, List[HistoryEntry]]]" = OrderedDict()

    def get(self, conversation_id: str) -> Optional[List[HistoryEntry]]:
        entry = self._entries.get(conversation_id)
        if entry is None:
            return None
        stored_at, history = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[conversation_id]
            return None
        self._entries.move_to_end(conversation_id)
        return list(history)

    def put(self, conversation_id: str, history: List[HistoryEntry]) -> None:
        self._entries[conversation_id] = (time.monotonic(), list(history))
        self._entries.move_to_end(conversation_id)
        while len(self._entries) > self.max_conversations:
            self._entries.popitem(last=False)

    def append(self, conversation_id: str, role: str, content: str) -> None:
        """Extend a cached history; a cold entry stays cold."""
        entry = self._entries.get(conversation_id)
        if entry is None:
            return
        entry[1].append((role, content))

    def invalidate(self, conversation_id: str) -> None:
        self._entries.pop(conversation_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_history_cache: Optional[ConversationHistoryCache] = None


def get_history_cache() -> ConversationHistoryCache:
    global _history_cache
    if _history_cache is None:
        _history_cache = ConversationHistoryCache(
            ttl_seconds=settings.history_cache_ttl_seconds,
            max_conversations=settings.history_cache_max_conversations,
        )
    return _history_cache


class ConversationService:
    def __init__(self, db: AsyncSession, cache: Optional[ConversationHistoryCache] = None):
        self.db = db
        self.cache = cache if cache is not None else get_history_cache()

    async def create_conversation(
        self,
        owner_id: str,
        title: Optional[str] = None,
        channel: str = "app",
    ) -> Conversation:
        conversation = Conversation(owner_id=owner_id, title=title, channel=channel)
        self.db.add(conversation)
        await self.db.commit()
        await self.db.refresh(conversation)
        self.cache.put(conversation.id, [])
        return conversation

    async def get_owned_conversation(self, conversation_id: str, owner_id: str) -> Conversation:
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.id == conversation_id,
                Conversation.owner_id == owner_id,
            )
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.owner_id == owner_id)
            .order_by(Conversation.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_messages(self, conversation_id: str) -> List[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_history(self, conversation_id: str, limit: int) -> List[HistoryEntry]:
        """Most recent ``limit`` turns, oldest first."""
        history = self.cache.get(conversation_id)
        if history is None:
            history = [(m.role, m.content) for m in await self.get_messages(conversation_id)]
            self.cache.put(conversation_id, history)
        return history[-limit:] if limit > 0 else []

    async def append_message(self, conversation_id: str, role: str, content: str) -> Message:
        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=datetime.utcnow(),
        )
        self.db.add(message)
        await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                message_count=Conversation.message_count + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        self.cache.append(conversation_id, role, content)
        return message

    async def set_title_if_empty(self, conversation: Conversation, title: Optional[str]) -> None:
        if not title or conversation.title:
            return
        conversation.title = title[:TITLE_MAX_CHARS]
        await self.db.commit()

    async def rename(self, conversation: Conversation, title: str) -> Conversation:
        conversation.title = title.strip()[:TITLE_MAX_CHARS] or None
        await self.db.commit()
        await self.db.refresh(conversation)
        return conversation

    async def delete(self, conversation: Conversation) -> None:
        conversation_id = conversation.id
        await self.db.execute(delete(Message).where(Message.conversation_id == conversation_id))
        await self.db.execute(
            delete(ConversationContext).where(ConversationContext.conversation_id == conversation_id)
        )
        await self.db.execute(delete(Conversation).where(Conversation.id == conversation_id))
        await self.db.commit()
        self.db.expunge(conversation)
        self.cache.invalidate(conversation_id)
