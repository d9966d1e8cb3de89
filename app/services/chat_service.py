"""
Chat Service - one assistant turn for either surface

Flow:
1. Resolve the actor (native user or Telegram user) to an owner id
2. Continue the requested conversation if that owner holds it, else start one
3. Merge the assistant context: message filters, then the conversation's, then the profile's
4. Load recent history (cache first)
5. Ask the provider for a reply; failures become a localized apology
6. Title the conversation from the reply if it has no title yet
7. Persist the user message and the assistant reply
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import Conversation
from app.i18n import Locale, t
from app.services.context_service import BusinessContext, ConversationContextService, describe_context
from app.services.conversation_service import ConversationService, TITLE_MAX_CHARS
from app.services.exceptions import ConversationNotFoundError
from app.services.llm_service import LLMService, get_llm_service
from app.services.ownership_resolver import Actor, BotActor, OwnershipResolver
from app.structured_logging import chat_log

logger = logging.getLogger(__name__)

TITLE_PREFIX = "TITLE:"


@dataclass
class ChatReply:
    response: str
    conversation_id: str
    message_id: str
    title: Optional[str]
    timestamp: datetime


def build_system_prompt(
    category: str,
    business_type: str,
    locale: Locale,
    context: Optional[BusinessContext] = None,
) -> str:
    context_text = describe_context(context, locale) if context else ""
    if locale == Locale.RU:
        return (
            "Ты - опытный бизнес-консультант, помогающий владельцам малого бизнеса. "
            f"Сфера бизнеса: {business_type}. Тема вопроса: {category}. "
            f"{context_text}"
            "Давай практичные, конкретные советы. "
            f"Первой строкой ответа напиши короткий заголовок беседы в формате '{TITLE_PREFIX} <заголовок>', "
            "затем пустую строку и сам ответ. Отвечай на русском языке."
        )
    return (
        "You are an experienced business consultant helping small business owners. "
        f"Business type: {business_type}. Topic: {category}. "
        f"{context_text}"
        "Give practical, specific advice. "
        f"Start your reply with a short conversation title as '{TITLE_PREFIX} <title>', "
        "then a blank line, then the answer. Reply in English."
    )


def split_title(raw: str) -> Tuple[Optional[str], str]:
    """
    Separate a leading ``TITLE:`` line from the reply body.

    Without one, the first non-empty body line doubles as the title.
    Titles are cut to 80 characters.
    """
    lines = raw.splitlines()
    title = None
    body = raw

    if lines and lines[0].strip().startswith(TITLE_PREFIX):
        title = lines[0].strip()[len(TITLE_PREFIX):].strip() or None
        rest = lines[1:]
        if rest and not rest[0].strip():
            rest = rest[1:]
        body = "\n".join(rest)

    if title is None:
        first_line = next((line.strip() for line in body.splitlines() if line.strip()), "")
        title = first_line or None

    if title:
        title = title[:TITLE_MAX_CHARS]
    return title, body


class ChatService:
    def __init__(
        self,
        db: AsyncSession,
        llm_service: Optional[LLMService] = None,
        conversations: Optional[ConversationService] = None,
    ):
        self.db = db
        self.llm_service = llm_service
        self.conversations = conversations or ConversationService(db)
        self.resolver = OwnershipResolver(db)
        self.contexts = ConversationContextService(db)

    async def send_message(
        self,
        actor: Actor,
        message: str,
        conversation_id: Optional[str] = None,
        category: Optional[str] = None,
        business_type: Optional[str] = None,
        locale: Locale = Locale.EN,
        context_filters: Optional[BusinessContext] = None,
    ) -> ChatReply:
        """
        ``context_filters`` override the stored context for this turn only,
        except that a newly started conversation keeps them as its context.
        """
        owner_id = await self.resolver.resolve_owner(actor)
        channel = "telegram" if isinstance(actor, BotActor) else "app"
        conversation, created = await self._get_or_create(owner_id, conversation_id, channel)
        if created and context_filters is not None and not context_filters.is_empty():
            await self.contexts.save(conversation.id, context_filters)
        context = await self.contexts.resolve(owner_id, conversation.id, context_filters)

        history = await self.conversations.get_history(
            conversation.id, settings.max_history_messages
        )
        messages = [{"role": "system", "content": build_system_prompt(
            category or "general",
            business_type or ("общий бизнес" if locale == Locale.RU else "general business"),
            locale,
            context,
        )}]
        messages.extend({"role": role, "content": content} for role, content in history)
        messages.append({"role": "user", "content": message})

        raw_reply = await self._generate(messages, conversation.id)
        if raw_reply is None:
            reply = t("assistant_error", locale)
        else:
            title, reply = split_title(raw_reply)
            await self.conversations.set_title_if_empty(conversation, title)

        await self.conversations.append_message(conversation.id, "user", message)
        assistant_message = await self.conversations.append_message(
            conversation.id, "assistant", reply
        )

        chat_log.info(
            "Chat turn stored",
            {"owner_id": owner_id, "conversation_id": conversation.id, "channel": channel},
        )
        return ChatReply(
            response=reply,
            conversation_id=conversation.id,
            message_id=assistant_message.id,
            title=conversation.title,
            timestamp=assistant_message.created_at,
        )

    async def list_conversations(self, actor: Actor) -> List[Conversation]:
        owner_id = await self.resolver.resolve_owner(actor)
        return await self.conversations.list_conversations(owner_id)

    async def get_conversation(self, actor: Actor, conversation_id: str) -> Conversation:
        owner_id = await self.resolver.resolve_owner(actor)
        return await self.conversations.get_owned_conversation(conversation_id, owner_id)

    async def get_context(self, actor: Actor, conversation_id: str) -> BusinessContext:
        """Stored context of an owned conversation; empty when none was set."""
        conversation = await self.get_conversation(actor, conversation_id)
        return await self.contexts.get(conversation.id) or BusinessContext()

    async def update_context(
        self,
        actor: Actor,
        conversation_id: str,
        changes: BusinessContext,
    ) -> BusinessContext:
        conversation = await self.get_conversation(actor, conversation_id)
        return await self.contexts.save(conversation.id, changes)

    async def _get_or_create(
        self,
        owner_id: str,
        conversation_id: Optional[str],
        channel: str,
    ) -> Tuple[Conversation, bool]:
        if conversation_id:
            try:
                return await self.conversations.get_owned_conversation(conversation_id, owner_id), False
            except ConversationNotFoundError:
                # Unknown or foreign id: start fresh rather than leak or fail
                logger.info(f"Conversation {conversation_id} not owned by {owner_id}, starting new one")
        return await self.conversations.create_conversation(owner_id, channel=channel), True

    async def _generate(self, messages, conversation_id: str) -> Optional[str]:
        """Provider reply text, or None when there is nothing usable to show."""
        try:
            response = await (self.llm_service or get_llm_service()).complete(messages)
        except Exception as e:
            chat_log.error(
                "Assistant provider failed",
                {"conversation_id": conversation_id, "error": str(e)},
            )
            return None

        if not response.content.strip():
            chat_log.warning("Assistant provider returned an empty reply", {"conversation_id": conversation_id})
            return None
        return response.content
