"""
LLM Service - the assistant's text-generation provider

Any OpenAI-compatible chat completions endpoint works (OpenRouter by
default); the ``openai`` client is pointed at ``settings.llm_api_base``.
Rate limits and connection errors are retried with exponential backoff,
every other provider error is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Dict, Optional

from openai import AsyncOpenAI, APIError, RateLimitError, APIConnectionError

from app.config import settings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0

RETRYABLE_ERRORS = (RateLimitError, APIConnectionError)


@dataclass
class LLMResponse:
    """Response from LLM completion"""
    content: str
    model: str
    tokens_prompt: int
    tokens_completion: int
    tokens_total: int
    finish_reason: str


def _to_response(completion) -> LLMResponse:
    choice = completion.choices[0]
    usage = completion.usage
    return LLMResponse(
        content=choice.message.content or "",
        model=completion.model,
        tokens_prompt=usage.prompt_tokens if usage else 0,
        tokens_completion=usage.completion_tokens if usage else 0,
        tokens_total=usage.total_tokens if usage else 0,
        finish_reason=choice.finish_reason or "",
    )


class LLMService:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.llm_api_key or "unset",
            base_url=settings.llm_api_base,
            timeout=settings.llm_timeout_seconds,
        )

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Generate one chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to settings.llm_model)
            temperature: Sampling temperature (defaults to settings.llm_temperature)
            max_tokens: Maximum tokens to generate (defaults to settings.llm_max_tokens)
        """
        request = {
            "model": model or settings.llm_model,
            "messages": messages,
            "temperature": settings.llm_temperature if temperature is None else temperature,
            "max_tokens": max_tokens or settings.llm_max_tokens,
        }

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                completion = await self.client.chat.completions.create(**request)
            except RETRYABLE_ERRORS as e:
                if attempt == MAX_ATTEMPTS:
                    logger.error(f"Provider unavailable after {attempt} attempts: {e}")
                    raise
                wait_time = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(f"{type(e).__name__} from provider, retrying in {wait_time}s")
                await asyncio.sleep(wait_time)
            except APIError as e:
                logger.error(f"Provider API error: {e}")
                raise
            else:
                return _to_response(completion)


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get the LLM service singleton. Overridden in tests via FastAPI dependency overrides."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
