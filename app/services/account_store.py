"""
Account Store - lookups and writes for native and bot accounts

Owns the uniqueness rules of both namespaces: users.email, the
telegram_users primary key, and the one-to-one telegram_users.user_id
link. ``set_link`` is the only statement that writes the link column.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import User, TelegramUser
from app.services.exceptions import BotAccountNotFoundError, LinkConflictError
from app.services.handle_normalizer import normalize_handle

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _clean(value: Optional[str]) -> Optional[str]:
    """Empty strings from the platform are stored as NULL."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class AccountStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Native accounts ──

    async def find_native_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def find_native_by_id(self, account_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .where(User.id == account_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_native_by_handle_key(self, handle_key: str) -> List[User]:
        result = await self.db.execute(
            select(User).where(
                User.telegram_handle_key == handle_key,
                User.is_active == True,
            )
        )
        return list(result.scalars().all())

    # ── Bot accounts ──

    async def find_bot_by_platform_id(self, platform_id: int) -> Optional[TelegramUser]:
        result = await self.db.execute(
            select(TelegramUser)
            .where(TelegramUser.telegram_id == platform_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_bot_by_linked_account(self, account_id: str) -> Optional[TelegramUser]:
        result = await self.db.execute(
            select(TelegramUser)
            .where(TelegramUser.user_id == account_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_bots_by_handle_key(self, handle_key: str) -> List[TelegramUser]:
        result = await self.db.execute(
            select(TelegramUser).where(TelegramUser.telegram_handle_key == handle_key)
        )
        return list(result.scalars().all())

    async def upsert_bot_account(
        self,
        platform_id: int,
        handle: Optional[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Tuple[TelegramUser, bool]:
        """
        Create the bot account if ``platform_id`` is unseen, else refresh its
        handle and names. Returns ``(account, created)``; the link is never
        touched here.
        """
        bot = await self.find_bot_by_platform_id(platform_id)
        created = bot is None
        if created:
            bot = TelegramUser(telegram_id=platform_id, created_at=datetime.utcnow())
            self.db.add(bot)
        self._apply_platform_fields(bot, handle, first_name, last_name)

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent webhook inserted the same platform_id first
            await self.db.rollback()
            bot = await self.find_bot_by_platform_id(platform_id)
            if bot is None:
                raise
            created = False
            self._apply_platform_fields(bot, handle, first_name, last_name)
            await self.db.commit()

        logger.debug(f"Upserted telegram user {platform_id} (created={created})")
        return bot, created

    @staticmethod
    def _apply_platform_fields(
        bot: TelegramUser,
        handle: Optional[str],
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> None:
        bot.telegram_username = _clean(handle)
        bot.telegram_handle_key = normalize_handle(handle)
        bot.first_name = _clean(first_name)
        bot.last_name = _clean(last_name)
        bot.last_seen_at = datetime.utcnow()

    async def set_link(self, platform_id: int, account_id: str) -> TelegramUser:
        """
        Atomically point ``platform_id`` at ``account_id``.

        One conditional UPDATE guarded by the UNIQUE constraint on
        telegram_users.user_id. Re-linking an existing pair succeeds.

        Raises:
            BotAccountNotFoundError: no telegram_users row for platform_id
            LinkConflictError: the bot row holds a different link, or the
                account is already the target of another bot row
        """
        stmt = (
            update(TelegramUser)
            .where(TelegramUser.telegram_id == platform_id)
            .where(or_(TelegramUser.user_id.is_(None), TelegramUser.user_id == account_id))
            .values(user_id=account_id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
        except IntegrityError:
            await self.db.rollback()
            raise LinkConflictError(
                platform_id, account_id, "user is already linked to another telegram account"
            )

        if result.rowcount == 0:
            await self.db.rollback()
            if await self.find_bot_by_platform_id(platform_id) is None:
                raise BotAccountNotFoundError(platform_id)
            raise LinkConflictError(
                platform_id, account_id, "telegram account is already linked to another user"
            )

        await self.db.commit()
        return await self.find_bot_by_platform_id(platform_id)
