"""Code surgery: rewrite a component so that listed visual defects are resolved."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from google.genai.types import GenerateContentConfig

from flowstate.core.ai import generate, get_ai_client, token_usage
from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.core.prompts import SURGEON_PROMPT, SURGEON_REQUEST
from flowstate.core.storage import preview_path_for, write_text
from flowstate.core.usage import UsageLedger
from flowstate.diagnosis.normalize import normalize_patch
from flowstate.schema.defect import Defect, RawDefect
from flowstate.schema.patch import PatchResult

__all__ = ("PatchService", "render_defects")


def render_defects(defects: Sequence[Defect | RawDefect]) -> str:
    """Numbered, one defect per line."""
    lines = []
    for i, raw in enumerate(defects):
        text = raw if isinstance(raw, str) else Defect.from_raw(raw, i).describe()
        lines.append(f"{i + 1}. {text}")
    return "\n".join(lines)


class PatchService:
    def __init__(self, client: Any = None, ledger: UsageLedger | None = None, model: str | None = None):
        self._client = client
        self.ledger = ledger
        self.model = model or settings.SURGEON_MODEL

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_ai_client()
        return self._client

    async def patch(self, code: str, defects: Sequence[Defect | RawDefect]) -> PatchResult:
        """
        Ask the surgeon model to fix ``defects`` in ``code``.

        Empty input short-circuits without a model call. Never raises.
        """
        if not defects:
            return PatchResult(success=False, error="No defects provided")
        if not code or not code.strip():
            return PatchResult(success=False, error="No code provided")

        request = SURGEON_REQUEST.format(code=code, defects=render_defects(defects))
        logger.info(f"Surgeon: fixing {len(defects)} defect(s) in {len(code)} chars of code")

        try:
            response = await generate(
                self.client,
                model=self.model,
                contents=request,
                config=GenerateContentConfig(system_instruction=SURGEON_PROMPT),
                label="surgeon",
            )
        except Exception as exc:
            logger.exception("Surgeon call failed")
            return PatchResult(success=False, error=str(exc) or type(exc).__name__)

        text = response.text or ""
        if self.ledger is not None:
            input_tokens, output_tokens = token_usage(response, SURGEON_PROMPT + request, text)
            await self.ledger.track_async(
                model=self.model,
                endpoint="patch",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                prompt=f"Fix {len(defects)} defects",
            )

        result = normalize_patch(text)
        if result.success:
            logger.info(f"Surgeon: produced {len(result.code)} chars")
        return result

    async def patch_file(
        self,
        path: str | Path,
        defects: Sequence[Defect | RawDefect],
        *,
        write_preview: bool = True,
        apply: bool = False,
    ) -> PatchResult:
        """Patch a file on disk; the original is only overwritten when ``apply`` is set."""
        path = Path(path)
        if not path.is_file():
            return PatchResult(success=False, error=f"File not found: {path}")

        code = await asyncio.to_thread(path.read_text, encoding="utf-8")
        result = await self.patch(code, defects)
        if not result.success:
            return result

        if write_preview:
            preview = await write_text(preview_path_for(path), result.code)
            logger.info(f"Preview written to {preview}")
            result = result.model_copy(update={"preview_path": preview})
        if apply:
            await write_text(path, result.code)
            logger.info(f"Applied fix to {path}")
        return result
