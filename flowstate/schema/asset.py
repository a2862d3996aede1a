"""
Asset generation models.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class AssetContext(StrEnum):
    avatar = "avatar"
    icon = "icon"
    hero = "hero"
    card = "card"
    general = "general"


class AssetTheme(StrEnum):
    dark = "dark"
    light = "light"


class ErrorType(StrEnum):
    input = "input"
    transport = "transport"
    no_image = "no_image"
    budget = "budget"


class AssetResult(BaseModel):
    """Result of one image generation call."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    success: bool
    image: bytes | None = Field(default=None, description="Raw image bytes (base64 in JSON)")
    url: str | None = None
    mime_type: str | None = None
    path: str | None = None
    error: str | None = None
    error_type: ErrorType | None = None
    cost: float | None = None
    budget_remaining: float | None = None


class AssetRequest(BaseModel):
    prompt: str = Field(min_length=1)
    # Plain strings: unknown values fall back to default templates
    context: str = AssetContext.general
    theme: str = AssetTheme.dark


class AssetFileRequest(AssetRequest):
    filename: str = Field(min_length=1)


class SaveAssetRequest(BaseModel):
    image: str = Field(min_length=1, description="Base64 image, optionally a data URL")
    prompt: str | None = None
    filename: str | None = None


class SavedAsset(BaseModel):
    filename: str
    path: str
    size: int
    created: datetime = Field(default_factory=lambda: datetime.now(UTC))
