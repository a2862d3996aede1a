"""Design chat: a short conversational turn with a design-expert system prompt."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from google.genai.types import Content, GenerateContentConfig, Part

from flowstate.core.ai import generate, get_ai_client, token_usage
from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.core.prompts import CHAT_CONTEXT, CHAT_PROMPT
from flowstate.core.usage import UsageLedger
from flowstate.schema.chat import ChatMessage, ChatReply

__all__ = ("build_contents", "design_chat")


def build_contents(message: str, history: Sequence[ChatMessage] = ()) -> list[Content]:
    """Prior turns in order, then the new user message."""
    contents = [
        Content(role="user" if turn.role == "user" else "model", parts=[Part.from_text(text=turn.content)])
        for turn in history
    ]
    contents.append(Content(role="user", parts=[Part.from_text(text=message)]))
    return contents


async def design_chat(
    message: str,
    *,
    context: str | None = None,
    history: Sequence[ChatMessage] = (),
    client: Any = None,
    ledger: UsageLedger | None = None,
) -> ChatReply:
    model = settings.CHAT_MODEL
    system_prompt = CHAT_PROMPT.format(context=CHAT_CONTEXT.format(topic=context) if context else "")
    logger.info(f"Design chat: {message[:100]!r} (context={context or 'none'}, {len(history)} prior turn(s))")

    try:
        response = await generate(
            client or get_ai_client(),
            model=model,
            contents=build_contents(message, history),
            config=GenerateContentConfig(system_instruction=system_prompt),
            label="chat",
        )
    except Exception as exc:
        logger.exception("Design chat failed")
        return ChatReply(success=False, error=str(exc) or type(exc).__name__)

    text = response.text or ""
    if ledger is not None:
        prompt_text = system_prompt + "".join(turn.content for turn in history) + message
        input_tokens, output_tokens = token_usage(response, prompt_text, text)
        await ledger.track_async(
            model=model,
            endpoint="chat",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            prompt=message,
        )
    return ChatReply(success=True, response=text, usage=ledger.summary() if ledger is not None else None)
