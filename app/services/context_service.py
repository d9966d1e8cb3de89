"""
Conversation Context - who is asking, and what for

Six optional fields steer the assistant's system prompt. A turn's context is
merged from three layers, highest priority first:

1. filters sent with the message
2. the context stored for the conversation
3. the owner's profile (role, stage, niche, region only)

A field left empty in a higher layer falls through to the next one.
Placeholder owners have no profile, so their base layer is empty.
"""

import logging
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import ConversationContext
from app.i18n import Locale
from app.services.account_store import AccountStore
from app.services.ownership_resolver import is_placeholder_owner

logger = logging.getLogger(__name__)

PROFILE_CONTEXT_FIELDS = ("user_role", "business_stage", "business_niche", "region")


@dataclass(frozen=True)
class BusinessContext:
    user_role: Optional[str] = None
    business_stage: Optional[str] = None
    goal: Optional[str] = None
    urgency: Optional[str] = None
    region: Optional[str] = None
    business_niche: Optional[str] = None

    @classmethod
    def from_source(cls, source: Union[Mapping[str, Any], Any, None]) -> "BusinessContext":
        """Read the context fields from a mapping or an ORM row. Blank values count as unset."""
        if source is None:
            return cls()
        values = {}
        for f in fields(cls):
            value = source.get(f.name) if isinstance(source, Mapping) else getattr(source, f.name, None)
            if isinstance(value, str):
                value = value.strip() or None
            values[f.name] = value
        return cls(**values)

    def overlay(self, other: Optional["BusinessContext"]) -> "BusinessContext":
        """Fields set in ``other`` replace ours."""
        if other is None:
            return self
        changes = {f.name: getattr(other, f.name) for f in fields(other) if getattr(other, f.name) is not None}
        return replace(self, **changes)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def merge_contexts(
    base: BusinessContext,
    conversation: Optional[BusinessContext] = None,
    filters: Optional[BusinessContext] = None,
) -> BusinessContext:
    """filters > conversation > base"""
    return base.overlay(conversation).overlay(filters)


# ── Prompt wording ──

_LABELS = {
    Locale.EN: {
        "user_role": {
            "owner": "business owner",
            "marketer": "marketer",
            "accountant": "accountant",
            "beginner": "beginning entrepreneur",
        },
        "business_stage": {
            "startup": "just starting out",
            "stable": "has stable income",
            "scaling": "wants to scale",
        },
        "goal": {
            "increase_revenue": "increase revenue",
            "reduce_costs": "reduce costs",
            "hire_staff": "hire staff",
            "launch_ads": "launch advertising",
            "legal_help": "solve a legal issue",
        },
    },
    Locale.RU: {
        "user_role": {
            "owner": "владелец бизнеса",
            "marketer": "маркетолог",
            "accountant": "бухгалтер",
            "beginner": "начинающий предприниматель",
        },
        "business_stage": {
            "startup": "только запускается",
            "stable": "имеет стабильный доход",
            "scaling": "хочет масштабироваться",
        },
        "goal": {
            "increase_revenue": "увеличить выручку",
            "reduce_costs": "сократить расходы",
            "hire_staff": "нанять сотрудников",
            "launch_ads": "запустить рекламу",
            "legal_help": "решить юридический вопрос",
        },
    },
}

_SENTENCES = {
    Locale.EN: {
        "user_role": "The user is a {}. ",
        "business_stage": "Business stage: {}. ",
        "business_niche": "Niche: {}. ",
        "goal": "Current request goal: {}. ",
        "region": "Region: {}. Consider local legislation and market characteristics. ",
        "urgent": "This is an urgent question, requires a quick practical answer. ",
    },
    Locale.RU: {
        "user_role": "Пользователь - {}. ",
        "business_stage": "Этап бизнеса: {}. ",
        "business_niche": "Ниша: {}. ",
        "goal": "Цель текущего запроса: {}. ",
        "region": "Регион: {}. Учитывай местные особенности законодательства и рынка. ",
        "urgent": "Это срочный вопрос, требуется быстрый практический ответ. ",
    },
}


def describe_context(context: BusinessContext, locale: Locale) -> str:
    """Prompt sentences for the fields that are set; empty string when none are."""
    labels, sentences = _LABELS[locale], _SENTENCES[locale]
    parts = []

    # Unknown roles and stages read as the common case
    if context.user_role:
        role = labels["user_role"].get(context.user_role, labels["user_role"]["owner"])
        parts.append(sentences["user_role"].format(role))
    if context.business_stage:
        stage = labels["business_stage"].get(context.business_stage, labels["business_stage"]["stable"])
        parts.append(sentences["business_stage"].format(stage))
    if context.business_niche:
        parts.append(sentences["business_niche"].format(context.business_niche))
    if context.goal:
        parts.append(sentences["goal"].format(labels["goal"].get(context.goal, context.goal)))
    if context.region:
        parts.append(sentences["region"].format(context.region))
    if context.urgency == "urgent":
        parts.append(sentences["urgent"])

    return "".join(parts)


class ConversationContextService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, conversation_id: str) -> Optional[BusinessContext]:
        row = await self._find(conversation_id)
        return BusinessContext.from_source(row) if row is not None else None

    async def save(self, conversation_id: str, changes: BusinessContext) -> BusinessContext:
        """
        Store ``changes`` for the conversation. Fields left unset in
        ``changes`` keep their stored value. Returns the stored context.
        """
        row = await self._find(conversation_id)
        if row is None:
            row = ConversationContext(conversation_id=conversation_id)
            self.db.add(row)
        self._apply(row, changes)

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent save created the row first
            await self.db.rollback()
            row = await self._find(conversation_id)
            if row is None:
                raise
            self._apply(row, changes)
            await self.db.commit()

        logger.debug(f"Saved context for conversation {conversation_id}")
        return BusinessContext.from_source(row)

    async def owner_base_context(self, owner_id: str) -> BusinessContext:
        if is_placeholder_owner(owner_id):
            return BusinessContext()
        user = await AccountStore(self.db).find_native_by_id(owner_id)
        if user is None:
            return BusinessContext()
        return BusinessContext.from_source({name: getattr(user, name) for name in PROFILE_CONTEXT_FIELDS})

    async def resolve(
        self,
        owner_id: str,
        conversation_id: str,
        filters: Optional[BusinessContext] = None,
    ) -> BusinessContext:
        """The merged context for one turn of ``conversation_id``."""
        return merge_contexts(
            await self.owner_base_context(owner_id),
            await self.get(conversation_id),
            filters,
        )

    async def _find(self, conversation_id: str) -> Optional[ConversationContext]:
        result = await self.db.execute(
            select(ConversationContext)
            .where(ConversationContext.conversation_id == conversation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _apply(row: ConversationContext, changes: BusinessContext) -> None:
        for f in fields(changes):
            value = getattr(changes, f.name)
            if value is not None:
                setattr(row, f.name, value)
        row.updated_at = datetime.utcnow()
