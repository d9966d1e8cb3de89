"""
Structured logging for the identity, session and chat subsystems.

Each subsystem logs through its own ``app.<subsystem>`` logger. When JSON
output is enabled every record carries the subsystem tag, the request id
and the authenticated user id of the request that produced it.
Tokens and passwords never go into ``data``; log ``token_hint(token)``.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from enum import Enum
from typing import Any, Dict, Optional

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")


class Subsystem(str, Enum):
    API = "api"
    AUTH = "auth"
    IDENTITY = "identity"
    CHAT = "chat"
    DB = "db"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "subsystem": getattr(record, "subsystem", "general"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, var in (("request_id", request_id_var), ("user_id", user_id_var)):
            value = var.get()
            if value:
                entry[key] = value

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }
        return json.dumps(entry, default=str, ensure_ascii=False)


class SubsystemLogger:
    """``logging.Logger`` facade taking an optional ``data`` dict per call."""

    def __init__(self, subsystem: Subsystem):
        self.subsystem = subsystem
        self.logger = logging.getLogger(f"app.{subsystem.value}")

    def log(self, level: int, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        extra = {"subsystem": self.subsystem.value}
        if data:
            extra["data"] = data
            if not _structured_enabled:
                # Plain-text handlers still see the payload
                msg = f"{msg} {json.dumps(data, default=str, ensure_ascii=False)}"
        self.logger.log(level, msg, extra=extra, **kwargs)

    def debug(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.log(logging.DEBUG, msg, data, **kwargs)

    def info(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.log(logging.INFO, msg, data, **kwargs)

    def warning(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.log(logging.WARNING, msg, data, **kwargs)

    def error(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.log(logging.ERROR, msg, data, **kwargs)


_loggers: Dict[Subsystem, SubsystemLogger] = {}
_structured_enabled = False


def get_subsystem_logger(subsystem: Subsystem) -> SubsystemLogger:
    if subsystem not in _loggers:
        _loggers[subsystem] = SubsystemLogger(subsystem)
    return _loggers[subsystem]


def enable_structured_logging(level=logging.INFO):
    """Send the ``app`` logger tree to stdout as JSON. Safe to call twice."""
    global _structured_enabled
    if _structured_enabled:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("app")
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    _structured_enabled = True


def set_request_context(request_id: str = "", user_id: str = ""):
    """Attach correlation ids to every record logged for the current request."""
    if request_id:
        request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def token_hint(token: Optional[str]) -> str:
    """First characters of a bearer token, enough to correlate log lines."""
    return f"{token[:6]}..." if token else ""


api_log = get_subsystem_logger(Subsystem.API)
auth_log = get_subsystem_logger(Subsystem.AUTH)
identity_log = get_subsystem_logger(Subsystem.IDENTITY)
chat_log = get_subsystem_logger(Subsystem.CHAT)
db_log = get_subsystem_logger(Subsystem.DB)
