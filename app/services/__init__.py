from app.services.auth_service import (
    verify_password, get_password_hash, authenticate_user, create_user,
    update_profile, get_user_by_id, get_user_by_email
)
from app.services.session_service import create_session, validate_session
from app.services.handle_normalizer import normalize_handle, handles_match
from app.services.account_store import AccountStore
from app.services.identity_linker import IdentityLinker, AutoLinkOutcome
from app.services.ownership_resolver import (
    OwnershipResolver, NativeActor, BotActor, placeholder_owner_id
)
from app.services.conversation_service import (
    ConversationService, ConversationHistoryCache, get_history_cache
)
from app.services.context_service import (
    BusinessContext, ConversationContextService, merge_contexts
)
from app.services.chat_service import ChatService, ChatReply
from app.services.llm_service import LLMService, get_llm_service

__all__ = [
    "verify_password",
    "get_password_hash",
    "authenticate_user",
    "create_user",
    "update_profile",
    "get_user_by_id",
    "get_user_by_email",
    # Sessions
    "create_session",
    "validate_session",
    # Identity reconciliation
    "normalize_handle",
    "handles_match",
    "AccountStore",
    "IdentityLinker",
    "AutoLinkOutcome",
    "OwnershipResolver",
    "NativeActor",
    "BotActor",
    "placeholder_owner_id",
    # Conversations
    "ConversationService",
    "ConversationHistoryCache",
    "get_history_cache",
    "BusinessContext",
    "ConversationContextService",
    "merge_contexts",
    "ChatService",
    "ChatReply",
    "LLMService",
    "get_llm_service",
]
