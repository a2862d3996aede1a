"""
Element snapshot, context and design-system models sent by the overlay.

Request payloads come from browser code and use camelCase keys; both
camelCase and snake_case are accepted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = (
    "ComputedStyle",
    "DesignSystem",
    "Dimensions",
    "ElementContext",
    "ElementSnapshot",
    "PageSample",
    "SiblingSnapshot",
)

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ComputedStyle(BaseModel):
    """Subset of ``getComputedStyle`` values the analyzers look at."""

    model_config = _CAMEL

    padding: str | None = None
    padding_top: str | None = None
    margin: str | None = None
    margin_bottom: str | None = None
    font_size: str | None = None
    color: str | None = None
    background_color: str | None = None
    border_radius: str | None = None
    border: str | None = None
    width: str | None = None
    height: str | None = None
    display: str | None = None
    text_align: str | None = None


class DesignSystem(BaseModel):
    """Most common style values of buttons and inputs on the page."""

    model_config = _CAMEL

    button_padding: str | None = None
    button_radius: str | None = None
    button_font_size: str | None = None
    button_background: str | None = None
    input_padding: str | None = None
    input_radius: str | None = None
    input_font_size: str | None = None
    input_border: str | None = None


class SiblingSnapshot(BaseModel):
    model_config = _CAMEL

    tag: str
    width: float | None = None
    margin_bottom: str | None = None


class ElementSnapshot(BaseModel):
    """Everything the local analyzer needs to know about one element."""

    model_config = _CAMEL

    tag: str
    role: str | None = None
    input_type: str | None = None
    text: str | None = None
    placeholder: str | None = None
    selector: str | None = None
    html: str = Field(default="", description="Outer HTML prefix, used as the cache fingerprint")
    styles: ComputedStyle = Field(default_factory=ComputedStyle)
    width: float | None = None
    height: float | None = None
    src: str | None = None
    natural_width: int | None = None
    alt: str | None = None
    siblings: list[SiblingSnapshot] = Field(default_factory=list)


class Dimensions(BaseModel):
    width: float | None = None
    height: float | None = None


class ElementContext(BaseModel):
    """Structured fallback payload when no screenshot is available."""

    model_config = _CAMEL

    element: str
    text: str | None = None
    selector: str | None = None
    dimensions: Dimensions = Field(default_factory=Dimensions)
    current_styles: ComputedStyle | None = None
    parent_tag: str | None = None
    html: str | None = None
    design_system: DesignSystem | None = None


class PageSample(BaseModel):
    """Computed styles of every button-like and input-like element on a page."""

    model_config = _CAMEL

    buttons: list[ComputedStyle] = Field(default_factory=list)
    inputs: list[ComputedStyle] = Field(default_factory=list)
