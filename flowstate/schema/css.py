"""
CSS suggestion models.
"""

from pydantic import AliasChoices, BaseModel, Field

from flowstate.schema.element import DesignSystem


class SuggestCssRequest(BaseModel):
    element: str = Field(min_length=1)
    current_css: str = Field(validation_alias=AliasChoices("current_css", "currentCSS", "currentCss"))
    system_instructions: str = Field(
        default="", validation_alias=AliasChoices("system_instructions", "systemInstructions")
    )
    design_system: DesignSystem | None = Field(
        default=None, validation_alias=AliasChoices("design_system", "designSystem")
    )


class CssSuggestion(BaseModel):
    success: bool
    css: str | None = None
    styles: dict[str, str] = Field(default_factory=dict, description="Parsed property -> value declarations")
    error: str | None = None
