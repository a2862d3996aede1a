"""Deterministic defect rules over an element context, used when no screenshot is available."""

from __future__ import annotations

from collections.abc import Callable

from flowstate.diagnosis.local import contrast_ratio, parse_color, parse_px
from flowstate.schema.defect import Defect
from flowstate.schema.element import DesignSystem, ElementContext

__all__ = ("CONTEXT_RULES", "analyze_context")

# Assumed width of a form container when only the parent tag is known
FORM_WIDTH_PX = 400

ContextRule = Callable[[ElementContext, DesignSystem], Defect | None]


def _padding_values(value: str | None) -> list[float]:
    if not value:
        return []
    return [parse_px(part) or 0 for part in value.split()]


def _defect(ctx: ElementContext, defect_id: str, **fields) -> Defect:
    return Defect(
        id=defect_id,
        element=fields.pop("element", ctx.element),
        element_text=ctx.text or None,
        selector_hint=ctx.selector or ctx.element,
        **fields,
    )


def _button_padding(ctx: ElementContext, ds: DesignSystem) -> Defect | None:
    padding = ctx.current_styles.padding if ctx.current_styles else None
    values = _padding_values(padding)
    if ctx.element != "button" or not any(v < 10 for v in values):
        return None
    expected = ds.button_padding or "12px 16px"
    return _defect(
        ctx,
        "defect-1",
        issue=f"Button padding is too small ({padding})",
        expected=f"{expected} for comfortable click target",
        why="Small padding makes buttons hard to tap on mobile",
        auto_fix={"padding": expected},
    )


def _button_radius(ctx: ElementContext, ds: DesignSystem) -> Defect | None:
    radius = parse_px(ctx.current_styles.border_radius) if ctx.current_styles else None
    if ctx.element != "button" or radius is None or not 0 < radius < 6:
        return None
    expected = ds.button_radius or "8px"
    return _defect(
        ctx,
        "defect-2",
        issue=f"Button border-radius ({radius:g}px) may look dated",
        expected=f"{expected} for a modern, friendly appearance",
        why="Slightly rounded corners feel more approachable",
        auto_fix={"border-radius": expected},
    )


def _button_width(ctx: ElementContext, ds: DesignSystem) -> Defect | None:
    width = ctx.dimensions.width
    if ctx.element != "button" or not width or ctx.parent_tag != "div":
        return None
    if width >= FORM_WIDTH_PX * 0.5:
        return None
    return _defect(
        ctx,
        "defect-3",
        issue="Button width may be inconsistent with form inputs",
        expected="Full width (100%) to match input fields",
        why="Consistent widths create visual harmony in forms",
        auto_fix={"width": "100%"},
    )


def _input_padding(ctx: ElementContext, ds: DesignSystem) -> Defect | None:
    values = _padding_values(ctx.current_styles.padding if ctx.current_styles else None)
    if ctx.element != "input" or not any(v < 8 for v in values):
        return None
    expected = ds.input_padding or "12px 16px"
    return _defect(
        ctx,
        "defect-input-1",
        issue="Input padding is cramped",
        expected=f"{expected} for comfortable text entry",
        why="Adequate padding improves readability and usability",
        auto_fix={"padding": expected},
    )


def _contrast(ctx: ElementContext, ds: DesignSystem) -> Defect | None:
    styles = ctx.current_styles
    background = parse_color(styles.background_color) if styles else None
    foreground = parse_color(styles.color) if styles else None
    if background is None or foreground is None or background[3] == 0:
        return None
    ratio = contrast_ratio(background, foreground)
    if ratio >= 3.0:
        return None
    return _defect(
        ctx,
        "defect-contrast",
        issue=f"Text may have low contrast against background ({ratio:.1f}:1)",
        expected="At least 4.5:1 for WCAG AA",
        why="Good contrast is essential for readability and accessibility",
    )


CONTEXT_RULES: tuple[ContextRule, ...] = (
    _button_padding,
    _button_radius,
    _button_width,
    _input_padding,
    _contrast,
)


def analyze_context(ctx: ElementContext) -> list[Defect]:
    """Run every context rule; a context without styles yields no defects."""
    if ctx.current_styles is None:
        return []
    ds = ctx.design_system or DesignSystem()
    return [d for rule in CONTEXT_RULES if (d := rule(ctx, ds)) is not None]
