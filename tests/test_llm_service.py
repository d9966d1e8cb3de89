"""
Tests for the provider wrapper and structured log records
"""

import json
import logging
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

from app.services import llm_service
from app.services.llm_service import LLMService
from app.structured_logging import StructuredFormatter, set_request_context, token_hint


class FakeCompletions:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.requests = []

    async def create(self, **request):
        self.requests.append(request)
        if self.failures:
            self.failures -= 1
            raise APIConnectionError(request=httpx.Request("POST", "https://provider.test/chat"))
        return SimpleNamespace(
            model=request["model"],
            choices=[SimpleNamespace(
                message=SimpleNamespace(content="Hello"),
                finish_reason="stop",
            )],
            usage=SimpleNamespace(prompt_tokens=3, completion_tokens=1, total_tokens=4),
        )


def fake_client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(llm_service, "RETRY_BASE_DELAY", 0)


@pytest.mark.asyncio
async def test_complete_uses_settings_defaults():
    completions = FakeCompletions()
    service = LLMService(client=fake_client(completions))

    response = await service.complete([{"role": "user", "content": "hi"}])

    assert response.content == "Hello"
    assert response.tokens_total == 4
    request = completions.requests[0]
    assert request["model"] == llm_service.settings.llm_model
    assert request["max_tokens"] == llm_service.settings.llm_max_tokens


@pytest.mark.asyncio
async def test_connection_errors_are_retried():
    completions = FakeCompletions(failures=2)
    service = LLMService(client=fake_client(completions))

    response = await service.complete([{"role": "user", "content": "hi"}], model="m", temperature=0)

    assert response.content == "Hello"
    assert len(completions.requests) == 3
    assert completions.requests[0]["temperature"] == 0


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    completions = FakeCompletions(failures=5)
    service = LLMService(client=fake_client(completions))

    with pytest.raises(APIConnectionError):
        await service.complete([{"role": "user", "content": "hi"}])
    assert len(completions.requests) == llm_service.MAX_ATTEMPTS


# ============ Structured logging ============

def test_formatter_includes_subsystem_context_and_data():
    set_request_context(request_id="req-1", user_id="user-1")
    record = logging.LogRecord("app.identity", logging.INFO, __file__, 1, "Auto-link skipped", None, None)
    record.subsystem = "identity"
    record.data = {"outcome": "ambiguous", "platform_id": 42}

    entry = json.loads(StructuredFormatter().format(record))

    assert entry["subsystem"] == "identity"
    assert entry["request_id"] == "req-1"
    assert entry["user_id"] == "user-1"
    assert entry["data"] == {"outcome": "ambiguous", "platform_id": 42}


def test_token_hint_never_reveals_token():
    token = "abcdefghijklmnopqrstuvwxyz0123456789"
    assert token_hint(token) == "abcdef..."
    assert token_hint(None) == ""
