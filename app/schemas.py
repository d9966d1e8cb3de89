"""Pydantic schemas for API requests and responses"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, EmailStr


# ============ User Schemas ============

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    business_type: Optional[str] = None
    full_name: Optional[str] = None
    nickname: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    gender: Optional[str] = None
    profile_picture: Optional[str] = None
    telegram_username: Optional[str] = None
    user_role: Optional[str] = None
    business_stage: Optional[str] = None
    business_niche: Optional[str] = None
    region: Optional[str] = None


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    business_type: str
    full_name: Optional[str] = None
    nickname: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    gender: Optional[str] = None
    profile_picture: Optional[str] = None
    telegram_username: Optional[str] = None
    user_role: Optional[str] = None
    business_stage: Optional[str] = None
    business_niche: Optional[str] = None
    region: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Partial update: only fields present in the request body are written"""
    business_type: Optional[str] = None
    full_name: Optional[str] = None
    nickname: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    gender: Optional[str] = None
    profile_picture: Optional[str] = None
    telegram_username: Optional[str] = None
    user_role: Optional[str] = None
    business_stage: Optional[str] = None
    business_niche: Optional[str] = None
    region: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class AuthResponse(Token):
    user: UserResponse


class ExistsResponse(BaseModel):
    exists: bool


class TokenStatus(BaseModel):
    valid: bool
    message: str  # "valid" | "expired" | "invalid"


# ============ Telegram Schemas ============

class TelegramUserUpsert(BaseModel):
    telegram_user_id: int
    telegram_username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TelegramUserResponse(BaseModel):
    telegram_user_id: int = Field(validation_alias="telegram_id")
    telegram_username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class LinkRequest(BaseModel):
    user_id: str = Field(min_length=1)


# ============ Conversation Schemas ============

class ContextFilters(BaseModel):
    """Assistant context fields; unset or blank fields fall through to the next layer"""
    user_role: Optional[str] = None  # owner, marketer, accountant, beginner
    business_stage: Optional[str] = None  # startup, stable, scaling
    goal: Optional[str] = None  # increase_revenue, reduce_costs, hire_staff, launch_ads, legal_help
    urgency: Optional[str] = None  # urgent, normal, planning
    region: Optional[str] = None
    business_niche: Optional[str] = None


class ConversationContextResponse(ContextFilters):
    conversation_id: str


class ChatRequest(BaseModel):
    message: str
    conversation_id: Optional[str] = None
    category: Optional[str] = None
    business_type: Optional[str] = None
    language: Optional[str] = None  # "en" | "ru"; overrides Accept-Language
    context_filters: Optional[ContextFilters] = None


class ChatResponse(BaseModel):
    response: str
    conversation_id: str
    message_id: str
    title: Optional[str] = None
    timestamp: datetime


class MessageResponse(BaseModel):
    id: str
    role: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationCreate(BaseModel):
    title: Optional[str] = None
    context: Optional[ContextFilters] = None


class ConversationUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=500)


class ConversationResponse(BaseModel):
    id: str
    owner_id: str
    title: Optional[str]
    channel: str
    message_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationListResponse(BaseModel):
    conversations: List[ConversationResponse]
    total_count: int


class ConversationHistoryResponse(BaseModel):
    conversation: ConversationResponse
    messages: List[MessageResponse]
