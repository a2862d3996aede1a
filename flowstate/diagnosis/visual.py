"""Visual UI inspection using Gemini multimodal models."""

from __future__ import annotations

import asyncio
import mimetypes
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from google.genai.types import GenerateContentConfig, Part

from flowstate.core.ai import generate, get_ai_client, token_usage
from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.core.prompts import ANNOTATION_HINTS, INSPECT_REQUEST, INSPECTOR_PROMPT, VOICE_HINTS
from flowstate.core.usage import UsageLedger
from flowstate.diagnosis.context import analyze_context
from flowstate.diagnosis.normalize import parse_inspection
from flowstate.schema.defect import DefectReport, InspectionResult
from flowstate.schema.element import ElementContext

__all__ = ("INSPECT_ERROR_ID", "InspectionService")

INSPECT_ERROR_ID = "defect-inspect-error"

_IMAGE_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def _failed(error: str) -> InspectionResult:
    return InspectionResult(
        success=False,
        data=DefectReport.review_required(INSPECT_ERROR_ID, f"Inspection failed: {error}"),
        error=error,
    )


def _numbered(lines: Sequence[str]) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, 1))


class InspectionService:
    """
    Diagnoses visual defects from a screenshot (vision model) or from a
    structured element context (local rule table).
    """

    def __init__(self, client: Any = None, ledger: UsageLedger | None = None, model: str | None = None):
        self._client = client
        self.ledger = ledger
        self.model = model or settings.INSPECTOR_MODEL

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_ai_client()
        return self._client

    async def inspect_file(self, path: str | Path) -> InspectionResult:
        path = Path(path)
        if not path.is_file():
            return InspectionResult(
                success=False,
                data=DefectReport.review_required(INSPECT_ERROR_ID, f"File not found: {path}"),
                error=f"File not found: {path}",
            )
        mime_type = _IMAGE_TYPES.get(path.suffix.lower()) or mimetypes.guess_type(path.name)[0] or "image/png"
        data = await asyncio.to_thread(path.read_bytes)
        return await self.inspect_image(data, mime_type)

    async def inspect_image(
        self,
        data: bytes,
        mime_type: str = "image/png",
        annotations: Sequence[str] = (),
        voice_instructions: Sequence[str] = (),
    ) -> InspectionResult:
        """Submit one screenshot to the inspector model. Never raises."""
        if not data:
            return _failed("Empty screenshot")

        request = INSPECT_REQUEST
        if annotations:
            request += "\n\n" + ANNOTATION_HINTS.format(annotations=_numbered(annotations))
        if voice_instructions:
            request += "\n\n" + VOICE_HINTS.format(instructions=_numbered([f'"{v}"' for v in voice_instructions]))

        try:
            response = await generate(
                self.client,
                model=self.model,
                contents=[Part.from_bytes(data=data, mime_type=mime_type), request],
                config=GenerateContentConfig(
                    system_instruction=INSPECTOR_PROMPT,
                    response_mime_type="application/json",
                ),
                label="inspector",
            )
        except Exception as exc:
            logger.exception("Inspector call failed")
            return _failed(str(exc) or type(exc).__name__)

        text = response.text or ""
        logger.debug(f"Inspector raw response: {text[:100]}")

        if self.ledger is not None:
            input_tokens, output_tokens = token_usage(response, INSPECTOR_PROMPT + request, text)
            await self.ledger.track_async(
                model=self.model,
                endpoint="inspect",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                prompt=request,
            )

        result = parse_inspection(text)
        if result.success:
            logger.info(
                f"Inspection complete: looks_good={result.data.looks_good}, defects={len(result.data.defects)}"
            )
        return result.model_copy(
            update={"annotations": list(annotations), "voice_instructions": list(voice_instructions)}
        )

    async def inspect_context(self, context: ElementContext) -> InspectionResult:
        """Rule-based inspection of an element context. No model call."""
        defects = analyze_context(context)
        logger.info(f"Context analysis of <{context.element}>: {len(defects)} defect(s)")
        return InspectionResult(
            success=True,
            data=DefectReport(looks_good=not defects, defects=defects),
        )
