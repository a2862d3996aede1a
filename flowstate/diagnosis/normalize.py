"""
Defensive decoding of model output into defect reports and code patches.

Everything here is total: malformed input yields a well-formed fallback,
never an exception. A report that could not be decoded never claims the
UI looks good.
"""

from __future__ import annotations

import json
import re
from typing import Any

from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.schema.defect import Defect, DefectReport, InspectionResult
from flowstate.schema.patch import PatchResult

__all__ = (
    "PARSE_ERROR_ID",
    "PARSE_ERROR_ISSUE",
    "ReportFormatError",
    "normalize_defect_report",
    "normalize_patch",
    "parse_inspection",
    "strip_fences",
)

PARSE_ERROR_ID = "defect-parse-error"
PARSE_ERROR_ISSUE = "⚠️ Parse error — manual review required"

# Any fence marker, with or without a language tag
_FENCE_MARKER = re.compile(r"```[\w.+-]*")
# First fenced block; the tag line is optional
_FENCED_BLOCK = re.compile(r"```(?:[\w.+-]*[ \t]*\r?\n)?([\s\S]*?)```")
# Opening fence of a block that was never closed (truncated output)
_OPEN_FENCE = re.compile(r"^```[\w.+-]*[ \t]*\r?\n?")


class ReportFormatError(ValueError):
    """Model output does not match the defect report schema."""


def _balanced_json_slice(text: str) -> str | None:
    """Return the first brace-balanced ``{...}`` slice, ignoring braces inside strings."""
    in_str = False
    esc = False
    depth = 0
    start = -1
    for i, ch in enumerate(text):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _load_json(text: str) -> Any:
    cleaned = _FENCE_MARKER.sub("", text).strip()
    if not cleaned:
        raise ReportFormatError("Empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        candidate = _balanced_json_slice(cleaned)
        if candidate is None or candidate == cleaned:
            raise ReportFormatError(f"Invalid JSON: {exc.msg}") from exc
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as inner:
            raise ReportFormatError(f"Invalid JSON: {inner.msg}") from inner


def _with_unique_ids(defects: list[Defect]) -> list[Defect]:
    seen: set[str] = set()
    result: list[Defect] = []
    for index, defect in enumerate(defects):
        if defect.id in seen:
            new_id = f"defect-{index + 1}"
            suffix = 2
            while new_id in seen:
                new_id = f"defect-{index + 1}-{suffix}"
                suffix += 1
            defect = defect.model_copy(update={"id": new_id})
        seen.add(defect.id)
        result.append(defect)
    return result


def _decode_report(text: str) -> DefectReport:
    if not isinstance(text, str):
        raise ReportFormatError("Response is not text")

    parsed = _load_json(text)
    if not isinstance(parsed, dict):
        raise ReportFormatError("Expected a JSON object")

    looks_good = parsed.get("looks_good")
    if not isinstance(looks_good, bool):
        raise ReportFormatError("Missing or invalid 'looks_good' field (expected boolean)")

    raw_defects = parsed["visual_defects"] if "visual_defects" in parsed else parsed.get("defects")
    if not isinstance(raw_defects, list):
        raise ReportFormatError("Missing or invalid 'visual_defects' field (expected array)")

    needs_asset = parsed.get("needs_asset_generation")
    if not isinstance(needs_asset, bool):
        raise ReportFormatError("Missing or invalid 'needs_asset_generation' field (expected boolean)")

    asset_prompt = parsed.get("asset_generation_prompt") if needs_asset else None
    if not isinstance(asset_prompt, str) or not asset_prompt.strip():
        asset_prompt = None

    defects = [Defect.from_raw(raw, index) for index, raw in enumerate(raw_defects)]
    return DefectReport(
        looks_good=looks_good,
        defects=_with_unique_ids(defects),
        needs_asset_generation=needs_asset,
        asset_generation_prompt=asset_prompt,
    )


def _fallback_report() -> DefectReport:
    return DefectReport.review_required(PARSE_ERROR_ID, PARSE_ERROR_ISSUE)


def parse_inspection(text: str) -> InspectionResult:
    """
    Decode an inspector response.

    ``success`` is False when the fallback report had to be used; ``data``
    is always a valid report.
    """
    try:
        return InspectionResult(success=True, data=_decode_report(text))
    except Exception as exc:
        preview = text[:200] if isinstance(text, str) else repr(text)[:200]
        logger.warning(f"Inspector parse error: {exc}. Raw response: {preview}")
        return InspectionResult(success=False, data=_fallback_report(), error=str(exc))


def normalize_defect_report(text: str) -> DefectReport:
    """Decode an inspector response into a report; never raises."""
    return parse_inspection(text).data


def normalize_patch(text: str, min_length: int | None = None) -> PatchResult:
    """
    Extract replacement source code from a surgeon response.

    Fenced output keeps only the fenced content; near-empty output is a
    failure (the model answered with chatter instead of code).
    """
    min_length = settings.MIN_PATCH_LENGTH if min_length is None else min_length
    try:
        if not isinstance(text, str):
            raise TypeError("Response is not text")
        code = strip_fences(text)
        if len(code) < min_length:
            raise ValueError("Response too short to be valid code")

        return PatchResult(success=True, code=code)
    except Exception as exc:
        logger.warning(f"Surgeon parse error: {exc}")
        return PatchResult(success=False, error=str(exc))


def strip_fences(text: str) -> str:
    """Content of the first fenced block, or the trimmed text when there is none."""
    text = (text or "").strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return _OPEN_FENCE.sub("", text, count=1).strip()
