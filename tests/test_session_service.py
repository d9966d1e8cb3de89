"""
Tests for session issuing and validation
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import init_db, drop_db, async_session_maker
from app.db.models import AuthSession
from app.services import create_user, create_session, validate_session
from app.services.exceptions import SessionError, SessionExpiredError, SessionInvalidError


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


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession):
    return await create_user(db_session, email="owner@example.com", password="secret123")


@pytest.mark.asyncio
async def test_create_session_persists_row(db_session: AsyncSession, test_user):
    now = datetime(2026, 1, 1, 12, 0, 0)
    session = await create_session(db_session, test_user.id, now=now)

    assert len(session.token) >= 43  # 32 random bytes, url-safe base64
    assert session.user_id == test_user.id
    assert session.expires_at == now + timedelta(hours=settings.session_lifetime_hours)

    result = await db_session.execute(select(AuthSession).where(AuthSession.token == session.token))
    assert result.scalar_one().user_id == test_user.id


@pytest.mark.asyncio
async def test_tokens_are_unique(db_session: AsyncSession, test_user):
    first = await create_session(db_session, test_user.id)
    second = await create_session(db_session, test_user.id)
    assert first.token != second.token


@pytest.mark.asyncio
async def test_validate_returns_account_until_expiry(db_session: AsyncSession, test_user):
    now = datetime(2026, 1, 1, 12, 0, 0)
    session = await create_session(db_session, test_user.id, now=now)

    assert await validate_session(db_session, session.token, now=now) == test_user.id
    just_before = session.expires_at - timedelta(seconds=1)
    assert await validate_session(db_session, session.token, now=just_before) == test_user.id


@pytest.mark.asyncio
async def test_validate_rejects_expired_session(db_session: AsyncSession, test_user):
    now = datetime(2026, 1, 1, 12, 0, 0)
    session = await create_session(db_session, test_user.id, now=now)

    with pytest.raises(SessionExpiredError) as exc_info:
        await validate_session(db_session, session.token, now=session.expires_at)
    assert exc_info.value.account_id == test_user.id

    with pytest.raises(SessionExpiredError):
        await validate_session(db_session, session.token, now=session.expires_at + timedelta(days=1))


@pytest.mark.asyncio
async def test_validate_rejects_unknown_token(db_session: AsyncSession):
    with pytest.raises(SessionInvalidError):
        await validate_session(db_session, "never-issued")


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, ""])
async def test_validate_rejects_missing_token(db_session: AsyncSession, token):
    with pytest.raises(SessionInvalidError):
        await validate_session(db_session, token)


@pytest.mark.asyncio
async def test_invalid_and_expired_share_a_base(db_session: AsyncSession, test_user):
    now = datetime(2026, 1, 1)
    session = await create_session(db_session, test_user.id, now=now)

    for token, when in (("bogus", now), (session.token, session.expires_at)):
        with pytest.raises(SessionError):
            await validate_session(db_session, token, now=when)
