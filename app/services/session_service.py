"""
Session Manager - opaque bearer sessions for native accounts

Tokens are random strings stored server-side. A session is valid while
``now < expires_at`` and is never renewed or revoked; a lapsed session
means the user logs in again. Uniqueness rests on token entropy
(256 bits), so there is no collision retry loop.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models import AuthSession
from app.services.exceptions import SessionExpiredError, SessionInvalidError
from app.structured_logging import auth_log, token_hint

TOKEN_BYTES = 32


def generate_session_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def session_lifetime() -> timedelta:
    return timedelta(hours=settings.session_lifetime_hours)


async def create_session(
    db: AsyncSession,
    account_id: str,
    now: Optional[datetime] = None,
) -> AuthSession:
    """Issue a new session for ``account_id`` and persist it."""
    now = now or datetime.utcnow()
    session = AuthSession(
        token=generate_session_token(),
        user_id=account_id,
        created_at=now,
        expires_at=now + session_lifetime(),
    )
    db.add(session)
    await db.commit()

    auth_log.info(
        "Session created",
        {"user_id": account_id, "token": token_hint(session.token), "expires_at": session.expires_at},
    )
    return session


async def validate_session(
    db: AsyncSession,
    token: Optional[str],
    now: Optional[datetime] = None,
) -> str:
    """
    Return the account id a token authenticates.

    Raises:
        SessionInvalidError: no session was ever issued with this token
        SessionExpiredError: the session exists but ``now >= expires_at``
    """
    if not token:
        raise SessionInvalidError("Missing session token")

    result = await db.execute(
        select(AuthSession).where(AuthSession.token == token)
    )
    session = result.scalar_one_or_none()
    if session is None:
        auth_log.info("Session rejected: unknown token", {"token": token_hint(token)})
        raise SessionInvalidError("Unknown session token")

    now = now or datetime.utcnow()
    if now >= session.expires_at:
        auth_log.info(
            "Session rejected: expired",
            {"token": token_hint(token), "user_id": session.user_id},
        )
        raise SessionExpiredError(session.user_id)

    return session.user_id
