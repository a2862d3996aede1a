"""
Local heuristic defect analysis.

Rule-based checks over an element's computed style and geometry. No
network, no AI: results are available instantly and independently of the
remote inspector, and use the same ``Defect`` shape so both can be merged.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum

from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.schema.defect import Defect
from flowstate.schema.element import ComputedStyle, DesignSystem, ElementSnapshot, PageSample

__all__ = (
    "DesignSystemCache",
    "ElementRole",
    "LocalAnalyzer",
    "analyze_locally",
    "contrast_ratio",
    "detect_design_system",
    "element_role",
    "mode",
    "parse_color",
    "parse_px",
    "relative_luminance",
)

DEFAULT_BUTTON_PADDING = "12px 24px"
DEFAULT_INPUT_PADDING = "12px 16px"
DEFAULT_RADIUS = "8px"
MIN_RADIUS_PX = 4
WIDTH_RATIO = 0.9

_PX = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")
_RGB = re.compile(
    r"rgba?\(\s*([\d.]+)\s*[,\s]\s*([\d.]+)\s*[,\s]\s*([\d.]+)\s*(?:[,/]\s*([\d.]+)(%?)\s*)?\)",
    re.IGNORECASE,
)
_HEX = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$", re.IGNORECASE)
_NAMED = {
    "black": (0, 0, 0, 1.0),
    "white": (255, 255, 255, 1.0),
    "transparent": (0, 0, 0, 0.0),
}

_BUTTON_INPUT_TYPES = {"submit", "button", "reset"}


class ElementRole(StrEnum):
    button = "button"
    input = "input"
    image = "image"
    generic = "generic"


# ── value parsing ────────────────────────────────────────────────────────


def parse_px(value: str | None) -> float | None:
    """Leading numeric value of a CSS length (``"12px 4px"`` -> 12.0)."""
    if not value:
        return None
    match = _PX.match(value)
    return float(match.group(1)) if match else None


def parse_color(value: str | None) -> tuple[float, float, float, float] | None:
    """Parse ``rgb()``/``rgba()``/hex/basic named colors into (r, g, b, alpha)."""
    if not value:
        return None
    value = value.strip()
    if value.lower() in _NAMED:
        return _NAMED[value.lower()]

    match = _RGB.search(value)
    if match:
        r, g, b = (float(match.group(i)) for i in (1, 2, 3))
        alpha = 1.0
        if match.group(4) is not None:
            alpha = float(match.group(4)) / (100 if match.group(5) else 1)
        return r, g, b, alpha

    match = _HEX.match(value)
    if match:
        digits = match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits)
        channels = [int(digits[i : i + 2], 16) for i in range(0, len(digits), 2)]
        alpha = channels[3] / 255 if len(channels) == 4 else 1.0
        return channels[0], channels[1], channels[2], alpha

    return None


def relative_luminance(rgb: tuple[float, ...]) -> float:
    """WCAG relative luminance of an sRGB color."""

    def channel(c: float) -> float:
        c = c / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (channel(c) for c in rgb[:3])
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(first: tuple[float, ...], second: tuple[float, ...]) -> float:
    lum_a = relative_luminance(first)
    lum_b = relative_luminance(second)
    return (max(lum_a, lum_b) + 0.05) / (min(lum_a, lum_b) + 0.05)


# ── design system baseline ───────────────────────────────────────────────


def mode(values: Iterable[str | None]) -> str | None:
    """Most frequent non-empty value; the first seen wins ties."""
    counts = Counter(v for v in values if v)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def detect_design_system(buttons: Sequence[ComputedStyle], inputs: Sequence[ComputedStyle]) -> DesignSystem:
    return DesignSystem(
        button_padding=mode(s.padding for s in buttons),
        button_radius=mode(s.border_radius for s in buttons),
        button_font_size=mode(s.font_size for s in buttons),
        button_background=mode(s.background_color for s in buttons),
        input_padding=mode(s.padding for s in inputs),
        input_radius=mode(s.border_radius for s in inputs),
        input_font_size=mode(s.font_size for s in inputs),
        input_border=mode(s.border for s in inputs),
    )


class DesignSystemCache:
    """
    Lazily computed, memoized page baseline.

    The baseline is computed on first use from ``sampler`` (or from a sample
    pushed with :meth:`update`) and kept until :meth:`invalidate` is called,
    e.g. on navigation.
    """

    def __init__(self, sampler: Callable[[], PageSample] | None = None):
        self._sampler = sampler
        self._value: DesignSystem | None = None
        # Bumped whenever the baseline is replaced or dropped
        self.version = 0

    def get(self) -> DesignSystem | None:
        if self._value is None and self._sampler is not None:
            sample = self._sampler()
            self._value = detect_design_system(sample.buttons, sample.inputs)
            logger.debug(f"Detected design system: {self._value.model_dump(exclude_none=True)}")
        return self._value

    def update(self, sample: PageSample) -> DesignSystem:
        self._value = detect_design_system(sample.buttons, sample.inputs)
        self.version += 1
        return self._value

    def invalidate(self) -> None:
        self._value = None
        self.version += 1


# ── checks ───────────────────────────────────────────────────────────────


def element_role(snapshot: ElementSnapshot) -> ElementRole:
    tag = snapshot.tag.lower()
    input_type = (snapshot.input_type or "").lower()
    if tag == "button" or (snapshot.role or "").lower() == "button" or input_type in _BUTTON_INPUT_TYPES:
        return ElementRole.button
    if tag in ("input", "textarea"):
        return ElementRole.input
    if tag == "img":
        return ElementRole.image
    return ElementRole.generic


class _Collector:
    """Accumulates local defects with sequential ``local-<n>`` ids."""

    def __init__(self, snapshot: ElementSnapshot):
        self.snapshot = snapshot
        self.defects: list[Defect] = []

    def add(
        self,
        issue: str,
        expected: str,
        why: str,
        *,
        element: str | None = None,
        element_text: str | None = None,
        auto_fix: dict[str, str] | None = None,
        needs_asset: bool = False,
    ) -> None:
        tag = self.snapshot.tag.lower()
        self.defects.append(
            Defect(
                id=f"local-{len(self.defects) + 1}",
                element=element or tag,
                element_text=element_text if element_text is not None else _text_of(self.snapshot),
                selector_hint=self.snapshot.selector or tag,
                issue=issue,
                expected=expected,
                why=why,
                auto_fix=auto_fix,
                needs_asset=needs_asset,
            )
        )


def _text_of(snapshot: ElementSnapshot) -> str | None:
    text = (snapshot.text or "").strip()[:50]
    return text or None


def _padding_top(styles: ComputedStyle) -> float | None:
    return parse_px(styles.padding_top) if styles.padding_top else parse_px(styles.padding)


def _check_contrast(out: _Collector, styles: ComputedStyle, element: str) -> None:
    background = parse_color(styles.background_color)
    foreground = parse_color(styles.color)
    if background is None or foreground is None or background[3] == 0:
        return
    ratio = contrast_ratio(background, foreground)
    if ratio < settings.ANALYZER_MIN_CONTRAST:
        on_black = contrast_ratio(background, (0, 0, 0))
        on_white = contrast_ratio(background, (255, 255, 255))
        out.add(
            f"Low contrast between text and background ({ratio:.1f}:1)",
            "At least 4.5:1 for WCAG AA",
            "Poor contrast affects readability and accessibility",
            element=element,
            auto_fix={"color": "#000000" if on_black >= on_white else "#FFFFFF"},
        )


def _check_font_size(out: _Collector, styles: ComputedStyle, element: str, label: str) -> None:
    font_size = parse_px(styles.font_size)
    if font_size is not None and font_size < settings.ANALYZER_MIN_FONT_PX:
        out.add(
            f"{label} text too small ({font_size:g}px)",
            f"{settings.ANALYZER_MIN_FONT_PX}-16px minimum for readability",
            "Small text is hard to read, especially on mobile",
            element=element,
            auto_fix={"font-size": f"{settings.ANALYZER_MIN_FONT_PX}px"},
        )


def _button_checks(out: _Collector, snapshot: ElementSnapshot, ds: DesignSystem) -> None:
    styles = snapshot.styles

    padding = _padding_top(styles)
    if padding is not None and padding < settings.ANALYZER_MIN_PADDING_PX:
        expected = ds.button_padding or DEFAULT_BUTTON_PADDING
        out.add(
            f"Button padding too small ({padding:g}px)",
            expected,
            "Small padding makes buttons hard to tap on mobile",
            element="button",
            auto_fix={"padding": expected},
        )

    radius = parse_px(styles.border_radius)
    baseline_radius = ds.input_radius or ds.button_radius or DEFAULT_RADIUS
    expected_radius = parse_px(baseline_radius) or 0
    if radius is not None and radius < MIN_RADIUS_PX and expected_radius >= 2 * MIN_RADIUS_PX:
        out.add(
            f"Button corners sharper than other elements ({radius:g}px vs {expected_radius:g}px)",
            f"{expected_radius:g}px to match design system",
            "Consistent border-radius creates visual harmony",
            element="button",
            auto_fix={"border-radius": baseline_radius},
        )

    sibling_input = next((s for s in snapshot.siblings if s.tag.lower() == "input" and s.width), None)
    if sibling_input is not None and snapshot.width is not None:
        if snapshot.width < sibling_input.width * WIDTH_RATIO:
            out.add(
                f"Button narrower than form inputs ({round(snapshot.width)}px vs {round(sibling_input.width)}px)",
                "100%",
                "Buttons should align with form fields",
                element="button",
                auto_fix={"width": "100%"},
            )

    _check_contrast(out, styles, "button")
    _check_font_size(out, styles, "button", "Button")


def _input_checks(out: _Collector, snapshot: ElementSnapshot, ds: DesignSystem) -> None:
    padding = _padding_top(snapshot.styles)
    if padding is not None and padding < settings.ANALYZER_MIN_PADDING_PX:
        expected = ds.input_padding or DEFAULT_INPUT_PADDING
        out.add(
            f"Input padding too small ({padding:g}px)",
            expected,
            "Adequate padding improves readability and usability",
            element_text=snapshot.placeholder or "",
            auto_fix={"padding": expected},
        )


def _generic_checks(out: _Collector, snapshot: ElementSnapshot) -> None:
    if not _text_of(snapshot):
        return
    tag = snapshot.tag.lower()
    _check_contrast(out, snapshot.styles, tag)
    _check_font_size(out, snapshot.styles, tag, "Body")


def _spacing_checks(out: _Collector, snapshot: ElementSnapshot) -> None:
    sampled = snapshot.siblings[: settings.ANALYZER_SIBLING_SAMPLE]
    if not sampled:
        return
    margin = parse_px(snapshot.styles.margin_bottom) or 0
    average = sum(parse_px(s.margin_bottom) or 0 for s in sampled) / len(sampled)
    if average > 0 and abs(margin - average) > settings.ANALYZER_MAX_MARGIN_DRIFT_PX:
        out.add(
            f"Spacing inconsistent with siblings ({margin:g}px vs avg {round(average)}px)",
            f"{round(average)}px margin-bottom",
            "Consistent spacing creates visual rhythm",
            auto_fix={"margin-bottom": f"{round(average)}px"},
        )


def _image_checks(out: _Collector, snapshot: ElementSnapshot) -> None:
    src = snapshot.src or ""
    if not src or "placeholder" in src.lower() or snapshot.natural_width == 0:
        out.add(
            "Missing or placeholder image",
            "Actual image asset",
            "Placeholder images look unfinished",
            element="img",
            element_text=snapshot.alt or "image",
            needs_asset=True,
        )


def analyze_locally(snapshot: ElementSnapshot, design_system: DesignSystem | None = None) -> list[Defect]:
    """
    Run every heuristic that applies to the element's role.

    Checks whose input style is missing from the snapshot are skipped; with
    no baseline the hardcoded defaults are used as expected values.
    """
    ds = design_system or DesignSystem()
    out = _Collector(snapshot)
    role = element_role(snapshot)

    if role is ElementRole.button:
        _button_checks(out, snapshot, ds)
    elif role is ElementRole.input:
        _input_checks(out, snapshot, ds)
    elif role is ElementRole.generic:
        _generic_checks(out, snapshot)

    _spacing_checks(out, snapshot)

    if role is ElementRole.image:
        _image_checks(out, snapshot)

    return out.defects


class LocalAnalyzer:
    """Owns the page baseline and runs :func:`analyze_locally` against it."""

    def __init__(self, sampler: Callable[[], PageSample] | None = None):
        self.design_system = DesignSystemCache(sampler)

    def analyze(self, snapshot: ElementSnapshot, design_system: DesignSystem | None = None) -> list[Defect]:
        return analyze_locally(snapshot, design_system or self.design_system.get())

    def invalidate(self) -> None:
        self.design_system.invalidate()
