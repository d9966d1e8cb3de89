"""
Tests for conversation ownership resolution across native and Telegram actors
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import init_db, drop_db, async_session_maker
from app.services import (
    BotActor, ConversationService, IdentityLinker, NativeActor, OwnershipResolver,
    create_user, get_history_cache, placeholder_owner_id,
)
from app.services.ownership_resolver import is_placeholder_owner


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create a fresh database for each test"""
    get_history_cache().clear()
    await init_db()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def db_session():
    """Get a database session"""
    async with async_session_maker() as session:
        yield session


def test_placeholder_owner_id():
    assert placeholder_owner_id(99) == "telegram:99"
    assert is_placeholder_owner("telegram:99")
    assert not is_placeholder_owner("7f7c6c1e-0000-4000-8000-000000000000")


@pytest.mark.asyncio
async def test_native_actor_owns_itself(db_session: AsyncSession):
    assert await OwnershipResolver(db_session).resolve_owner(NativeActor("abc")) == "abc"


@pytest.mark.asyncio
async def test_unknown_bot_resolves_to_placeholder(db_session: AsyncSession):
    assert await OwnershipResolver(db_session).resolve_owner(BotActor(12345)) == "telegram:12345"


@pytest.mark.asyncio
async def test_linked_bot_resolves_to_native_account(db_session: AsyncSession):
    user = await create_user(db_session, email="a@x.com", password="secret123", telegram_username="foo")
    await IdentityLinker(db_session).register_bot_account(42, "foo")

    assert await OwnershipResolver(db_session).resolve_owner(BotActor(42)) == user.id


@pytest.mark.asyncio
async def test_link_from_another_session_is_visible_immediately(db_session: AsyncSession):
    user = await create_user(db_session, email="a@x.com", password="secret123")
    user_id = user.id
    await IdentityLinker(db_session).register_bot_account(42, None)
    resolver = OwnershipResolver(db_session)
    assert await resolver.resolve_owner(BotActor(42)) == "telegram:42"

    async with async_session_maker() as other:
        await IdentityLinker(other).link_explicit(42, user_id)

    assert await resolver.resolve_owner(BotActor(42)) == user_id


@pytest.mark.asyncio
async def test_placeholder_history_is_not_migrated_on_link(db_session: AsyncSession):
    user = await create_user(db_session, email="a@x.com", password="secret123")
    user_id = user.id
    linker = IdentityLinker(db_session)
    resolver = OwnershipResolver(db_session)
    conversations = ConversationService(db_session)

    await linker.register_bot_account(99, None)
    owner = await resolver.resolve_owner(BotActor(99))
    assert owner == "telegram:99"
    early = await conversations.create_conversation(owner, channel="telegram")
    await conversations.append_message(early.id, "user", "hello from the bot")

    # Visible to the bot through its placeholder, invisible to every native account
    assert [c.id for c in await conversations.list_conversations(owner)] == [early.id]
    assert await conversations.list_conversations(user_id) == []

    await linker.link_explicit(99, user_id)

    # After linking the bot resolves to the native account, which still does not see it
    assert await resolver.resolve_owner(BotActor(99)) == user_id
    assert await conversations.list_conversations(user_id) == []

    later = await conversations.create_conversation(await resolver.resolve_owner(BotActor(99)))
    assert [c.id for c in await conversations.list_conversations(user_id)] == [later.id]
