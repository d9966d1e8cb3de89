from app.api.auth import router as auth_router, get_current_user
from app.api.telegram import router as telegram_router, require_bot_key
from app.api.chat import router as chat_router

__all__ = [
    "auth_router",
    "telegram_router",
    "chat_router",
    "get_current_user",
    "require_bot_key",
]
