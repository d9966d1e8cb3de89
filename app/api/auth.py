"""Authentication and profile endpoints for native app accounts"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db, User
from app.i18n import detect_locale, t
from app.schemas import (
    UserCreate, UserLogin, UserResponse, AuthResponse, ProfileUpdate,
    ExistsResponse, TokenStatus,
)
from app.services import (
    authenticate_user, create_user, update_profile, get_user_by_id,
    get_user_by_email, create_session, validate_session,
    normalize_handle, handles_match, IdentityLinker, AccountStore,
)
from app.services.exceptions import (
    EmailAlreadyRegisteredError, SessionExpiredError, SessionInvalidError,
)
from app.structured_logging import set_request_context

router = APIRouter(prefix="/auth", tags=["Authentication"])
security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency to get the current authenticated user from a Bearer session token."""
    locale = detect_locale(request)
    token = credentials.credentials if credentials else None

    try:
        user_id = await validate_session(db, token)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=t("session_expired", locale),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except SessionInvalidError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=t("session_invalid", locale),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=t("user_not_found", locale),
        )

    set_request_context(user_id=user.id)
    return user


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Register a new user and open a session for it"""
    try:
        user = await create_user(db, **user_data.model_dump())
    except EmailAlreadyRegisteredError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=t("email_registered", detect_locale(request)),
        )

    if user.telegram_handle_key:
        await IdentityLinker(db).try_auto_link_native(user)

    session = await create_session(db, user.id)
    return AuthResponse(
        access_token=session.token,
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Login and get a session token"""
    user = await authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=t("bad_credentials", detect_locale(request)),
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = await create_session(db, user.id)
    return AuthResponse(
        access_token=session.token,
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user),
    )


@router.get("/check-user", response_model=ExistsResponse)
async def check_user(email: str, db: AsyncSession = Depends(get_db)):
    """Whether an account with this email exists"""
    return ExistsResponse(exists=await get_user_by_email(db, email) is not None)


@router.get("/check-telegram-username", response_model=ExistsResponse)
async def check_telegram_username(telegram_username: str, db: AsyncSession = Depends(get_db)):
    """Whether any account already claims this handle (compared normalized)"""
    key = normalize_handle(telegram_username)
    if key is None:
        return ExistsResponse(exists=False)
    users = await AccountStore(db).find_native_by_handle_key(key)
    return ExistsResponse(exists=any(handles_match(telegram_username, u.telegram_username) for u in users))


@router.get("/check-token", response_model=TokenStatus)
async def check_token(token: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    """Report whether a token is valid, expired, or was never issued"""
    try:
        user_id = await validate_session(db, token)
    except SessionExpiredError:
        return TokenStatus(valid=False, message="expired")
    except SessionInvalidError:
        return TokenStatus(valid=False, message="invalid")

    if await get_user_by_id(db, user_id) is None:
        return TokenStatus(valid=False, message="invalid")
    return TokenStatus(valid=True, message="valid")


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return current_user


@router.put("/profile", response_model=UserResponse)
async def put_profile(
    changes: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields present in the body. The handle is stored as typed."""
    fields = changes.model_dump(exclude_unset=True)
    user = await update_profile(db, current_user, fields)

    if "telegram_username" in fields and user.telegram_handle_key:
        await IdentityLinker(db).try_auto_link_native(user)
    return user
