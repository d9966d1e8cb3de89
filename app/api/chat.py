"""
Chat API - assistant conversations for native app users

Every read and write resolves the caller through the ownership resolver,
so a user whose Telegram account is linked sees the conversations they
started from the bot as well.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db, User
from app.i18n import detect_locale, parse_locale, t
from app.schemas import (
    ChatRequest, ChatResponse, ContextFilters, ConversationContextResponse,
    ConversationCreate, ConversationUpdate, ConversationResponse,
    ConversationListResponse, ConversationHistoryResponse, MessageResponse,
)
from app.api.auth import get_current_user
from app.services import (
    BusinessContext, ChatService, ConversationContextService, ConversationService,
    NativeActor, OwnershipResolver,
)
from app.services.exceptions import ConversationNotFoundError
from app.services.llm_service import LLMService, get_llm_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


async def _owned_conversation(request: Request, db: AsyncSession, user: User, conversation_id: str):
    try:
        return await ChatService(db).get_conversation(NativeActor(user.id), conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=t("conversation_not_found", detect_locale(request)),
        )


@router.post("/message", response_model=ChatResponse)
async def send_message(
    body: ChatRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    llm_service: LLMService = Depends(get_llm_service),
):
    """
    Send a message and get the assistant's reply.

    Continues ``conversation_id`` when the caller owns it, otherwise starts
    a new conversation. The business type defaults to the profile's.
    """
    locale = parse_locale(body.language) or detect_locale(request)
    if not body.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=t("message_required", locale))
    reply = await ChatService(db, llm_service=llm_service).send_message(
        NativeActor(current_user.id),
        body.message,
        conversation_id=body.conversation_id,
        category=body.category,
        business_type=body.business_type or current_user.business_type,
        locale=locale,
        context_filters=BusinessContext.from_source(body.context_filters.model_dump()) if body.context_filters else None,
    )
    return ChatResponse(**asdict(reply))


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's conversations, newest first."""
    conversations = await ChatService(db).list_conversations(NativeActor(current_user.id))
    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(c) for c in conversations],
        total_count=len(conversations),
    )


@router.post("/conversations", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    body: ConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    owner_id = await OwnershipResolver(db).resolve_owner(NativeActor(current_user.id))
    conversation = await ConversationService(db).create_conversation(owner_id, title=body.title)
    if body.context:
        await ConversationContextService(db).save(
            conversation.id, BusinessContext.from_source(body.context.model_dump())
        )
    return conversation


@router.get("/conversations/{conversation_id}/messages", response_model=ConversationHistoryResponse)
async def get_conversation_history(
    conversation_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await _owned_conversation(request, db, current_user, conversation_id)
    messages = await ConversationService(db).get_messages(conversation.id)
    return ConversationHistoryResponse(
        conversation=ConversationResponse.model_validate(conversation),
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.patch("/conversations/{conversation_id}", response_model=ConversationResponse)
async def rename_conversation(
    conversation_id: str,
    body: ConversationUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await _owned_conversation(request, db, current_user, conversation_id)
    return await ConversationService(db).rename(conversation, body.title)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await _owned_conversation(request, db, current_user, conversation_id)
    await ConversationService(db).delete(conversation)
    logger.info(f"Deleted conversation {conversation_id} for user {current_user.id}")


@router.get("/conversations/{conversation_id}/context", response_model=ConversationContextResponse)
async def get_conversation_context(
    conversation_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        context = await ChatService(db).get_context(NativeActor(current_user.id), conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=t("conversation_not_found", detect_locale(request)),
        )
    return ConversationContextResponse(conversation_id=conversation_id, **asdict(context))


@router.put("/conversations/{conversation_id}/context", response_model=ConversationContextResponse)
async def update_conversation_context(
    conversation_id: str,
    body: ContextFilters,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Set the conversation's assistant context. Fields left out (or null)
    keep their stored value.
    """
    try:
        context = await ChatService(db).update_context(
            NativeActor(current_user.id),
            conversation_id,
            BusinessContext.from_source(body.model_dump()),
        )
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=t("conversation_not_found", detect_locale(request)),
        )
    return ConversationContextResponse(conversation_id=conversation_id, **asdict(context))
