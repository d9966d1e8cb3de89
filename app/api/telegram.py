"""
Telegram bot surface

Called by the bot backend, not by end users: webhook upserts of Telegram
accounts, operator-driven explicit linking, and chat on behalf of a
Telegram user. When ``settings.bot_api_key`` is set every call must carry
it in ``X-Bot-Api-Key``.
"""

import hmac
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import get_db
from app.i18n import detect_locale, parse_locale, t
from app.schemas import (
    TelegramUserUpsert, TelegramUserResponse, LinkRequest,
    ChatRequest, ChatResponse, ConversationListResponse, ConversationResponse,
    ConversationHistoryResponse, MessageResponse,
)
from app.services import (
    AccountStore, IdentityLinker, ChatService, BotActor, BusinessContext, ConversationService,
)
from app.services.llm_service import LLMService, get_llm_service
from app.services.exceptions import (
    AccountNotFoundError, BotAccountNotFoundError, ConversationNotFoundError, LinkConflictError,
)
from app.structured_logging import api_log


async def require_bot_key(
    request: Request,
    x_bot_api_key: Optional[str] = Header(default=None),
) -> None:
    """FastAPI dependency: reject callers without the shared bot secret."""
    expected = settings.bot_api_key
    if not expected:
        return
    if not x_bot_api_key or not hmac.compare_digest(x_bot_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=t("bot_key_invalid", detect_locale(request)),
        )


router = APIRouter(
    prefix="/telegram",
    tags=["telegram"],
    dependencies=[Depends(require_bot_key)],
)


@router.post("/users", response_model=TelegramUserResponse)
async def upsert_telegram_user(
    body: TelegramUserUpsert,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Create or refresh a Telegram user as reported by the platform.

    Tries to link it to the native account with the same handle; linking
    is best-effort and never fails this call. 201 when the account is new.
    """
    bot, created = await IdentityLinker(db).register_bot_account(
        body.telegram_user_id,
        body.telegram_username,
        body.first_name,
        body.last_name,
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return TelegramUserResponse.model_validate(bot)


@router.get("/users/{telegram_user_id}", response_model=TelegramUserResponse)
async def get_telegram_user(
    telegram_user_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    bot = await AccountStore(db).find_bot_by_platform_id(telegram_user_id)
    if bot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=t("telegram_user_not_found", detect_locale(request)),
        )
    return TelegramUserResponse.model_validate(bot)


@router.post("/users/{telegram_user_id}/link", response_model=TelegramUserResponse)
async def link_telegram_user(
    telegram_user_id: int,
    body: LinkRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Explicitly link a Telegram user to a native account. 409 on conflict."""
    locale = detect_locale(request)
    try:
        bot = await IdentityLinker(db).link_explicit(telegram_user_id, body.user_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=t("user_not_found", locale))
    except BotAccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=t("telegram_user_not_found", locale))
    except LinkConflictError as e:
        api_log.warning("Link conflict surfaced to caller", {"platform_id": telegram_user_id, "reason": e.reason})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=t("link_conflict", locale))
    return TelegramUserResponse.model_validate(bot)


@router.post("/users/{telegram_user_id}/chat", response_model=ChatResponse)
async def telegram_chat(
    telegram_user_id: int,
    body: ChatRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    llm_service: LLMService = Depends(get_llm_service),
):
    """Send a message as a Telegram user; history is filed under the resolved owner."""
    locale = parse_locale(body.language) or detect_locale(request)
    if not body.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=t("message_required", locale))
    reply = await ChatService(db, llm_service=llm_service).send_message(
        BotActor(telegram_user_id),
        body.message,
        conversation_id=body.conversation_id,
        category=body.category,
        business_type=body.business_type,
        locale=locale,
        context_filters=BusinessContext.from_source(body.context_filters.model_dump()) if body.context_filters else None,
    )
    return ChatResponse(**asdict(reply))


@router.get("/users/{telegram_user_id}/conversations", response_model=ConversationListResponse)
async def list_telegram_conversations(
    telegram_user_id: int,
    db: AsyncSession = Depends(get_db),
):
    conversations = await ChatService(db).list_conversations(BotActor(telegram_user_id))
    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(c) for c in conversations],
        total_count=len(conversations),
    )


@router.get(
    "/users/{telegram_user_id}/conversations/{conversation_id}/messages",
    response_model=ConversationHistoryResponse,
)
async def get_telegram_conversation_history(
    telegram_user_id: int,
    conversation_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    try:
        conversation = await ChatService(db).get_conversation(BotActor(telegram_user_id), conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=t("conversation_not_found", detect_locale(request)),
        )
    messages = await ConversationService(db).get_messages(conversation.id)
    return ConversationHistoryResponse(
        conversation=ConversationResponse.model_validate(conversation),
        messages=[MessageResponse.model_validate(m) for m in messages],
    )
