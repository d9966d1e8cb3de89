"""
Conversation Ownership Resolver

Maps whoever is chatting to the single owner id conversations are filed
under. Native users own their conversations directly. A Telegram user owns
them through its linked native account, or through a placeholder derived
from its platform id while unlinked. Placeholder conversations are not
moved when a link appears later.
"""

from dataclasses import dataclass
from typing import Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.account_store import AccountStore

PLACEHOLDER_PREFIX = "telegram:"


@dataclass(frozen=True)
class NativeActor:
    account_id: str


@dataclass(frozen=True)
class BotActor:
    platform_id: int


Actor = Union[NativeActor, BotActor]


def placeholder_owner_id(platform_id: int) -> str:
    return f"{PLACEHOLDER_PREFIX}{platform_id}"


def is_placeholder_owner(owner_id: str) -> bool:
    return owner_id.startswith(PLACEHOLDER_PREFIX)


class OwnershipResolver:
    def __init__(self, db: AsyncSession):
        self.store = AccountStore(db)

    async def resolve_owner(self, actor: Actor) -> str:
        if isinstance(actor, NativeActor):
            return actor.account_id

        # Always read the current row: a link made by another request
        # must be visible on the very next read
        bot = await self.store.find_bot_by_platform_id(actor.platform_id)
        if bot is not None and bot.user_id:
            return bot.user_id
        return placeholder_owner_id(actor.platform_id)
