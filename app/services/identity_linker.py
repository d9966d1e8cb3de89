"""
Identity Linker - associates Telegram accounts with native app accounts

A telegram_users row is either Unlinked (user_id NULL) or Linked. There are
two ways to get from one to the other:

- Automatic: whenever a bot account is upserted (or a native account sets
  its handle) and both sides carry the same normalized handle, link them.
  Best-effort and silent: no match, ambiguous matches, an already-claimed
  target or a lost race simply leave the row Unlinked.
- Explicit: an operator names both ids. Handles are ignored, and every
  failure (missing record, conflict) is raised to the caller.

Both paths write through AccountStore.set_link, which enforces the
one-to-one invariant atomically, so they cannot race each other into a
duplicate link. Nothing here ever overwrites an existing link.
"""

from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import User, TelegramUser
from app.services.account_store import AccountStore
from app.services.exceptions import AccountNotFoundError, LinkConflictError
from app.services.handle_normalizer import handles_match
from app.structured_logging import identity_log


class AutoLinkOutcome(str, Enum):
    LINKED = "linked"
    ALREADY_LINKED = "already_linked"
    NO_HANDLE = "no_handle"
    NO_MATCH = "no_match"
    AMBIGUOUS = "ambiguous"
    CLAIMED = "claimed"
    LOST_RACE = "lost_race"


class IdentityLinker:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = AccountStore(db)

    async def register_bot_account(
        self,
        platform_id: int,
        handle: Optional[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> tuple[TelegramUser, bool]:
        """
        Webhook entry point: upsert the bot account, then try to auto-link it.

        Returns ``(account, created)``. Linking failures never propagate.
        """
        bot, created = await self.store.upsert_bot_account(
            platform_id, handle, first_name, last_name
        )
        identity_log.info(
            "Telegram user created" if created else "Telegram user updated",
            {"platform_id": platform_id, "linked": bot.is_linked},
        )

        if not bot.is_linked:
            await self.try_auto_link(bot)
            # Re-read: either the link landed or a lost race rolled the session back
            bot = await self.store.find_bot_by_platform_id(platform_id)
        return bot, created

    async def try_auto_link(self, bot: TelegramUser) -> AutoLinkOutcome:
        """Link ``bot`` to the single native account sharing its handle, if any."""
        platform_id, handle_key, handle = bot.telegram_id, bot.telegram_handle_key, bot.telegram_username
        if bot.is_linked:
            return AutoLinkOutcome.ALREADY_LINKED
        if not handle_key:
            return AutoLinkOutcome.NO_HANDLE

        # The stored key narrows the lookup; handles_match decides
        candidates = [
            user for user in await self.store.find_native_by_handle_key(handle_key)
            if handles_match(handle, user.telegram_username)
        ]
        if not candidates:
            outcome = AutoLinkOutcome.NO_MATCH
        elif len(candidates) > 1:
            outcome = AutoLinkOutcome.AMBIGUOUS
        elif await self.store.find_bot_by_linked_account(candidates[0].id) is not None:
            outcome = AutoLinkOutcome.CLAIMED
        else:
            outcome = await self._link_quietly(platform_id, candidates[0].id)

        self._log_outcome(outcome, platform_id, len(candidates))
        return outcome

    async def try_auto_link_native(self, user: User) -> AutoLinkOutcome:
        """
        Reverse direction: a native account just set its handle. Link it to
        the single unlinked bot account that reports the same handle.
        """
        account_id, handle_key, handle = user.id, user.telegram_handle_key, user.telegram_username
        if not handle_key:
            return AutoLinkOutcome.NO_HANDLE
        if await self.store.find_bot_by_linked_account(account_id) is not None:
            return AutoLinkOutcome.ALREADY_LINKED

        # Another native account with the same key makes the handle ambiguous
        natives = [
            other for other in await self.store.find_native_by_handle_key(handle_key)
            if handles_match(handle, other.telegram_username)
        ]
        if len(natives) > 1:
            self._log_outcome(AutoLinkOutcome.AMBIGUOUS, None, len(natives), account_id)
            return AutoLinkOutcome.AMBIGUOUS

        bots = [
            bot for bot in await self.store.find_bots_by_handle_key(handle_key)
            if handles_match(handle, bot.telegram_username)
        ]
        platform_id = bots[0].telegram_id if len(bots) == 1 else None
        if len(bots) > 1:
            outcome = AutoLinkOutcome.AMBIGUOUS
        elif not bots:
            outcome = AutoLinkOutcome.NO_MATCH
        elif bots[0].is_linked:
            outcome = AutoLinkOutcome.CLAIMED
        else:
            outcome = await self._link_quietly(platform_id, account_id)
            if outcome == AutoLinkOutcome.LOST_RACE:
                # The rollback expired the caller's instance; load it again
                await self.store.find_native_by_id(account_id)

        self._log_outcome(outcome, platform_id, len(bots), account_id)
        return outcome

    async def link_explicit(self, platform_id: int, account_id: str) -> TelegramUser:
        """
        Operator-driven link, bypassing handle matching.

        Raises:
            AccountNotFoundError, BotAccountNotFoundError, LinkConflictError
        """
        if await self.store.find_native_by_id(account_id) is None:
            raise AccountNotFoundError(account_id)

        try:
            bot = await self.store.set_link(platform_id, account_id)
        except LinkConflictError as e:
            identity_log.warning(
                "Explicit link rejected",
                {"platform_id": platform_id, "user_id": account_id, "reason": e.reason},
            )
            raise

        identity_log.info("Explicit link established", {"platform_id": platform_id, "user_id": account_id})
        return bot

    async def _link_quietly(self, platform_id: int, account_id: str) -> AutoLinkOutcome:
        try:
            await self.store.set_link(platform_id, account_id)
        except LinkConflictError:
            # A concurrent link got there first; automatic linking stays silent
            return AutoLinkOutcome.LOST_RACE
        return AutoLinkOutcome.LINKED

    @staticmethod
    def _log_outcome(
        outcome: AutoLinkOutcome,
        platform_id: Optional[int],
        candidates: int,
        user_id: Optional[str] = None,
    ) -> None:
        data = {"outcome": outcome.value, "platform_id": platform_id, "candidates": candidates}
        if user_id:
            data["user_id"] = user_id
        if outcome == AutoLinkOutcome.LINKED:
            identity_log.info("Auto-link established", data)
        else:
            identity_log.info("Auto-link skipped", data)
