"""Locale detection and user-facing message catalogue (English / Russian)."""

from enum import Enum
from typing import Optional

from fastapi import Request


class Locale(str, Enum):
    EN = "en"
    RU = "ru"


def parse_locale(value: Optional[str]) -> Optional[Locale]:
    if not value:
        return None
    return Locale.RU if value.strip().lower() in ("ru", "ru-ru") else Locale.EN


def detect_locale(request: Request) -> Locale:
    """``?lang=`` wins, then ``Accept-Language``, then English."""
    explicit = parse_locale(request.query_params.get("lang"))
    if explicit:
        return explicit

    accept = request.headers.get("accept-language", "").lower()
    if accept.startswith("ru"):
        return Locale.RU
    return Locale.EN


MESSAGES = {
    "email_registered": {
        Locale.EN: "Email already registered",
        Locale.RU: "Email уже зарегистрирован",
    },
    "bad_credentials": {
        Locale.EN: "Incorrect email or password",
        Locale.RU: "Неверный email или пароль",
    },
    "session_invalid": {
        Locale.EN: "Invalid session token",
        Locale.RU: "Недействительный токен сессии",
    },
    "session_expired": {
        Locale.EN: "Session expired, please log in again",
        Locale.RU: "Сессия истекла, войдите снова",
    },
    "user_not_found": {
        Locale.EN: "User not found",
        Locale.RU: "Пользователь не найден",
    },
    "telegram_user_not_found": {
        Locale.EN: "Telegram user not found",
        Locale.RU: "Пользователь Telegram не найден",
    },
    "link_conflict": {
        Locale.EN: "Telegram account or user is already linked to another account",
        Locale.RU: "Аккаунт Telegram или пользователь уже связан с другим аккаунтом",
    },
    "conversation_not_found": {
        Locale.EN: "Conversation not found",
        Locale.RU: "Беседа не найдена",
    },
    "message_required": {
        Locale.EN: "Message is required",
        Locale.RU: "Требуется сообщение",
    },
    "assistant_error": {
        Locale.EN: "Sorry, an error occurred while processing your request",
        Locale.RU: "Извините, произошла ошибка при обработке запроса",
    },
    "bot_key_invalid": {
        Locale.EN: "Invalid bot API key",
        Locale.RU: "Неверный ключ API бота",
    },
}


def t(key: str, locale: Locale = Locale.EN) -> str:
    return MESSAGES[key][locale]
