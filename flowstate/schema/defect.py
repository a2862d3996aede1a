"""
Defect and inspection result models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

__all__ = (
    "Defect",
    "DefectReport",
    "InspectionResult",
    "RawDefect",
)

# A defect as it arrives from a model or the overlay: a bare string
# (legacy shape) or a rich mapping.
RawDefect = str | dict[str, Any]


def _text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value or None
    return None


def _pick(raw: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _text(raw.get(key))
        if value:
            return value
    return None


def _style_map(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict) or not value:
        return None
    return {str(k): str(v) for k, v in value.items() if v is not None}


class Defect(BaseModel):
    """A single visual defect on one UI element."""

    id: str
    element: str = "unknown"
    element_text: str | None = None
    selector_hint: str = "*"
    issue: str = "Unknown issue"
    expected: str | None = None
    why: str | None = None
    auto_fix: dict[str, str] | None = Field(
        default=None,
        description="Style property -> value patch for a mechanical fix (local defects only)",
    )
    needs_asset: bool = Field(default=False, description="Element needs a generated image asset")

    @classmethod
    def from_raw(cls, raw: Any, index: int) -> Defect:
        """Collapse a raw defect (string or mapping) into the canonical shape."""
        fallback_id = f"defect-{index + 1}"
        if isinstance(raw, Defect):
            return raw
        if not isinstance(raw, dict):
            return cls(id=fallback_id, issue=_text(raw) or "Unknown issue")

        return cls(
            id=_pick(raw, "id") or fallback_id,
            element=_pick(raw, "element") or "unknown",
            element_text=_pick(raw, "element_text", "elementText"),
            selector_hint=_pick(raw, "selector_hint", "selectorHint") or "*",
            issue=_pick(raw, "issue", "description") or "Unknown issue",
            expected=_pick(raw, "expected"),
            why=_pick(raw, "why"),
            auto_fix=_style_map(raw.get("auto_fix", raw.get("autoFix"))),
            needs_asset=raw.get("needs_asset", raw.get("needsAsset")) is True,
        )

    def describe(self) -> str:
        """Single-line human-readable rendering, used in patch prompts."""
        text = self.issue
        target = [] if self.element == "unknown" else [self.element]
        if self.element_text:
            target.append(f'"{self.element_text}"')
        if self.selector_hint != "*":
            target.append(f"({self.selector_hint})")
        if target:
            text += f" [{' '.join(target)}]"
        if self.expected:
            text += f"; expected: {self.expected}"
        if self.why:
            text += f"; why: {self.why}"
        return " ".join(text.split())


class DefectReport(BaseModel):
    """Normalized result of one inspection."""

    looks_good: bool
    defects: list[Defect] = Field(default_factory=list)
    needs_asset_generation: bool = False
    asset_generation_prompt: str | None = None

    @classmethod
    def review_required(cls, defect_id: str, issue: str) -> DefectReport:
        """Fail-closed report: never claims the UI looks good."""
        return cls(
            looks_good=False,
            defects=[Defect(id=defect_id, issue=issue)],
            needs_asset_generation=False,
        )


class InspectionResult(BaseModel):
    """Envelope returned by the inspection service."""

    success: bool
    data: DefectReport
    error: str | None = None
    annotations: list[str] = Field(default_factory=list)
    voice_instructions: list[str] = Field(default_factory=list)
