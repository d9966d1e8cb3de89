"""Authentication service - password hashing and native account registration"""

import logging
from typing import Optional

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.db.models import User
from app.services.account_store import AccountStore, normalize_email
from app.services.exceptions import EmailAlreadyRegisteredError
from app.services.handle_normalizer import normalize_handle

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using bcrypt directly."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt directly."""
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(),
    ).decode("utf-8")


def set_telegram_handle(user: User, raw_handle: Optional[str]) -> None:
    """Store the handle as typed, and its comparison key alongside it."""
    raw_handle = raw_handle.strip() if raw_handle else None
    user.telegram_username = raw_handle or None
    user.telegram_handle_key = normalize_handle(raw_handle)


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str
) -> Optional[User]:
    """Authenticate a user by email and password"""
    user = await AccountStore(db).find_native_by_email(email)

    if not user:
        return None
    if not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    business_type: Optional[str] = None,
    telegram_username: Optional[str] = None,
    **profile,
) -> User:
    """Create a new native account. Raises EmailAlreadyRegisteredError on duplicates."""
    store = AccountStore(db)
    email = normalize_email(email)
    if await store.find_native_by_email(email):
        raise EmailAlreadyRegisteredError(email)

    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        business_type=business_type or "general",
        **{k: v for k, v in profile.items() if v is not None},
    )
    set_telegram_handle(user, telegram_username)
    db.add(user)

    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        await db.rollback()
        raise EmailAlreadyRegisteredError(email)

    await db.refresh(user)
    logger.info(f"Registered user {user.id}")
    return user


async def update_profile(db: AsyncSession, user: User, changes: dict) -> User:
    """
    Apply a partial profile update. Keys absent from ``changes`` are left
    alone, and so is a NOT NULL column sent as null.
    """
    columns = User.__table__.c
    for field, value in changes.items():
        if field == "telegram_username":
            set_telegram_handle(user, value)
        elif value is None and not columns[field].nullable:
            continue
        else:
            setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return user


async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """Get a user by ID"""
    return await AccountStore(db).find_native_by_id(user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get a user by email"""
    return await AccountStore(db).find_native_by_email(email)
