"""
CSS declaration parsing and model-backed style suggestions.
"""

from __future__ import annotations

from typing import Any

import yaml

from flowstate.core.ai import generate, get_ai_client, token_usage
from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.core.prompts import STYLIST_PROMPT
from flowstate.core.usage import UsageLedger
from flowstate.diagnosis.normalize import strip_fences
from flowstate.schema.css import CssSuggestion
from flowstate.schema.element import DesignSystem

__all__ = ("parse_declarations", "suggest_css")


def _split_top_level(text: str, separator: str) -> list[str]:
    """Split on ``separator`` outside quotes, parentheses and comments."""
    parts: list[str] = []
    buf: list[str] = []
    quote: str | None = None
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            buf.append(ch)
            if ch == "\\" and i + 1 < len(text):
                buf.append(text[i + 1])
                i += 1
            elif ch == quote:
                quote = None
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = len(text) if end == -1 else end + 2
            continue
        elif ch in "\"'":
            quote = ch
            buf.append(ch)
        elif ch == "(":
            depth += 1
            buf.append(ch)
        elif ch == ")":
            depth = max(depth - 1, 0)
            buf.append(ch)
        elif ch == separator and depth == 0:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return parts


def parse_declarations(css: str) -> dict[str, str]:
    """
    Parse a CSS declaration list (``prop: value; ...``) into a mapping.

    Values may span lines and contain ``;`` or ``:`` inside quotes or
    parentheses (``url(data:...)``, ``content: ";"``). A surrounding
    ``selector { ... }`` block is unwrapped. Later declarations win.
    """
    text = css.strip()
    if "{" in text and text.rstrip().endswith("}"):
        text = text[text.index("{") + 1 : text.rindex("}")]

    styles: dict[str, str] = {}
    for declaration in _split_top_level(text, ";"):
        name, colon, value = declaration.partition(":")
        if not colon:
            continue
        name = name.strip().lower()
        value = " ".join(value.split())
        if name and value:
            styles[name] = value
    return styles


def _design_system_block(design_system: DesignSystem | None) -> str:
    values = design_system.model_dump(exclude_none=True) if design_system else {}
    if not values:
        return ""
    dump = yaml.safe_dump(values, sort_keys=False, indent=2, width=1024, allow_unicode=True, default_flow_style=False)
    return f"\nDETECTED PATTERNS:\n{dump}"


async def suggest_css(
    element: str,
    current_css: str,
    *,
    system_instructions: str = "",
    design_system: DesignSystem | None = None,
    client: Any = None,
    ledger: UsageLedger | None = None,
) -> CssSuggestion:
    model = settings.STYLIST_MODEL
    prompt = STYLIST_PROMPT.format(
        element=element,
        instructions=f"\nDESIGN SYSTEM INSTRUCTIONS:\n{system_instructions}\n" if system_instructions else "",
        design_system=_design_system_block(design_system),
        current_css=current_css,
    )

    try:
        response = await generate(client or get_ai_client(), model=model, contents=prompt, label="stylist")
    except Exception as exc:
        logger.exception(f"CSS suggestion for <{element}> failed")
        return CssSuggestion(success=False, error=str(exc) or type(exc).__name__)

    text = response.text or ""
    if ledger is not None:
        input_tokens, output_tokens = token_usage(response, prompt, text)
        await ledger.track_async(
            model=model,
            endpoint="suggest-css",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            prompt=f"CSS for {element}",
        )

    css = strip_fences(text)
    return CssSuggestion(success=True, css=css, styles=parse_declarations(css))
