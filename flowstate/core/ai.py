"""AI client initialization and call helpers."""

from __future__ import annotations

import asyncio
import math
from typing import Any

from google import genai

from flowstate.core.config import settings
from flowstate.core.retry import with_retry

__all__ = (
    "estimate_tokens",
    "generate",
    "get_ai_client",
    "token_usage",
)

_ai_client: genai.Client | None = None


def get_ai_client() -> genai.Client:
    """Lazy-initialize the Gemini client. Raises if no API key is configured."""
    global _ai_client  # noqa: PLW0603
    if _ai_client is None:
        if not settings.GOOGLE_API_KEY:
            raise RuntimeError("FLOWSTATE_GOOGLE_API_KEY is not configured")
        _ai_client = genai.Client(api_key=settings.GOOGLE_API_KEY)
    return _ai_client


async def generate(client: Any, *, model: str, contents: Any, config: Any = None, label: str = "") -> Any:
    """
    Call ``client.aio.models.generate_content`` with a timeout and
    transport-level retries. Returns the raw SDK response.
    """

    async def _do_call() -> Any:
        return await asyncio.wait_for(
            client.aio.models.generate_content(model=model, contents=contents, config=config),
            timeout=settings.AI_API_TIMEOUT_SECONDS,
        )

    return await with_retry(
        _do_call,
        max_retries=settings.AI_API_MAX_RETRIES,
        label=label or model,
    )


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate (~4 characters per token)."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def token_usage(response: Any, prompt_text: str = "", output_text: str = "") -> tuple[int, int]:
    """
    Read (input, output) token counts from ``usage_metadata``,
    falling back to character-based estimates.
    """
    meta = getattr(response, "usage_metadata", None)
    input_tokens = getattr(meta, "prompt_token_count", None) or estimate_tokens(prompt_text)
    output_tokens = getattr(meta, "candidates_token_count", None) or estimate_tokens(output_text)
    return int(input_tokens), int(output_tokens)
