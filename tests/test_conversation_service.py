"""
Tests for the conversation store, its history cache, and reply title parsing
"""

import time

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import init_db, drop_db, async_session_maker
from app.services import ConversationHistoryCache, ConversationService
from app.services.chat_service import split_title, build_system_prompt
from app.services.exceptions import ConversationNotFoundError
from app.i18n import Locale


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create a fresh database for each test"""
    await init_db()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def db_session():
    """Get a database session"""
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def cache():
    return ConversationHistoryCache(ttl_seconds=60, max_conversations=10)


@pytest_asyncio.fixture
async def conversations(db_session: AsyncSession, cache):
    return ConversationService(db_session, cache=cache)


# ============ History cache ============

class TestConversationHistoryCache:
    def test_put_and_get_return_copies(self, cache):
        cache.put("c1", [("user", "hi")])
        history = cache.get("c1")
        history.append(("assistant", "mutated"))
        assert cache.get("c1") == [("user", "hi")]

    def test_append_extends_warm_entry_only(self, cache):
        cache.put("c1", [])
        cache.append("c1", "user", "hi")
        cache.append("cold", "user", "ignored")
        assert cache.get("c1") == [("user", "hi")]
        assert cache.get("cold") is None

    def test_entries_expire(self, monkeypatch):
        cache = ConversationHistoryCache(ttl_seconds=5, max_conversations=10)
        now = time.monotonic()
        monkeypatch.setattr(time, "monotonic", lambda: now)
        cache.put("c1", [("user", "hi")])

        monkeypatch.setattr(time, "monotonic", lambda: now + 6)
        assert cache.get("c1") is None
        assert len(cache) == 0

    def test_least_recently_used_is_evicted(self):
        cache = ConversationHistoryCache(ttl_seconds=60, max_conversations=2)
        cache.put("a", [])
        cache.put("b", [])
        cache.get("a")
        cache.put("c", [])

        assert cache.get("b") is None
        assert cache.get("a") == []
        assert cache.get("c") == []

    def test_invalidate(self, cache):
        cache.put("c1", [])
        cache.invalidate("c1")
        cache.invalidate("never-cached")
        assert cache.get("c1") is None


# ============ Conversation store ============

@pytest.mark.asyncio
async def test_injected_empty_cache_is_kept(db_session: AsyncSession, cache):
    assert len(cache) == 0
    assert ConversationService(db_session, cache=cache).cache is cache


@pytest.mark.asyncio
async def test_append_and_history(conversations: ConversationService, cache):
    conversation = await conversations.create_conversation("owner-1")
    await conversations.append_message(conversation.id, "user", "q1")
    await conversations.append_message(conversation.id, "assistant", "a1")
    await conversations.append_message(conversation.id, "user", "q2")

    assert await conversations.get_history(conversation.id, limit=2) == [
        ("assistant", "a1"), ("user", "q2"),
    ]
    assert cache.get(conversation.id) == [("user", "q1"), ("assistant", "a1"), ("user", "q2")]


@pytest.mark.asyncio
async def test_history_survives_cold_cache(conversations: ConversationService, cache):
    conversation = await conversations.create_conversation("owner-1")
    await conversations.append_message(conversation.id, "user", "q1")
    cache.clear()

    async with async_session_maker() as other:
        fresh = ConversationService(other, cache=ConversationHistoryCache(60, 10))
        assert await fresh.get_history(conversation.id, limit=20) == [("user", "q1")]
        listed = await fresh.list_conversations("owner-1")
        assert listed[0].message_count == 1


@pytest.mark.asyncio
async def test_ownership_is_enforced(conversations: ConversationService):
    conversation = await conversations.create_conversation("owner-1")
    assert (await conversations.get_owned_conversation(conversation.id, "owner-1")).id == conversation.id

    with pytest.raises(ConversationNotFoundError):
        await conversations.get_owned_conversation(conversation.id, "owner-2")
    with pytest.raises(ConversationNotFoundError):
        await conversations.get_owned_conversation("missing", "owner-1")


@pytest.mark.asyncio
async def test_list_is_scoped_to_owner(conversations: ConversationService):
    mine = await conversations.create_conversation("owner-1")
    await conversations.create_conversation("owner-2")

    assert [c.id for c in await conversations.list_conversations("owner-1")] == [mine.id]


@pytest.mark.asyncio
async def test_titles(conversations: ConversationService):
    conversation = await conversations.create_conversation("owner-1")
    await conversations.set_title_if_empty(conversation, "x" * 200)
    assert conversation.title == "x" * 80

    await conversations.set_title_if_empty(conversation, "ignored")
    assert conversation.title == "x" * 80

    renamed = await conversations.rename(conversation, "  Pricing  ")
    assert renamed.title == "Pricing"


@pytest.mark.asyncio
async def test_delete_removes_messages_and_cache(conversations: ConversationService, cache):
    conversation = await conversations.create_conversation("owner-1")
    conversation_id = conversation.id
    await conversations.append_message(conversation_id, "user", "q1")

    await conversations.delete(conversation)

    assert cache.get(conversation_id) is None
    assert await conversations.get_messages(conversation_id) == []
    assert await conversations.list_conversations("owner-1") == []


# ============ Title parsing ============

class TestSplitTitle:
    def test_title_line_is_stripped(self):
        title, body = split_title("TITLE: Opening a bakery\n\nStart with a business plan.")
        assert title == "Opening a bakery"
        assert body == "Start with a business plan."

    def test_falls_back_to_first_line(self):
        title, body = split_title("\nFirst, register the company.\nThen open an account.")
        assert title == "First, register the company."
        assert body == "\nFirst, register the company.\nThen open an account."

    def test_long_titles_are_truncated(self):
        title, _ = split_title("TITLE: " + "y" * 120 + "\nbody")
        assert title == "y" * 80

    def test_empty_title_line_falls_back(self):
        title, body = split_title("TITLE:\nActual answer")
        assert title == "Actual answer"
        assert body == "Actual answer"


def test_system_prompt_is_localized():
    english = build_system_prompt("finance", "cafe", Locale.EN)
    russian = build_system_prompt("finance", "cafe", Locale.RU)
    assert "TITLE:" in english and "cafe" in english
    assert "TITLE:" in russian and "русском" in russian
