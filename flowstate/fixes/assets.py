"""
Image asset generation and storage.

Prompts are augmented with context and theme phrases before being sent to
the image model. Every generation is gated on the remaining budget.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from google.genai.types import GenerateContentConfig

from flowstate.core.ai import generate, get_ai_client
from flowstate.core.config import settings
from flowstate.core.log import logger
from flowstate.core.storage import get_assets_dir, safe_filename, write_bytes
from flowstate.core.usage import UsageLedger
from flowstate.schema.asset import AssetContext, AssetResult, AssetTheme, ErrorType, SavedAsset

__all__ = ("CONTEXT_PHRASES", "THEME_PHRASES", "AssetService", "build_asset_prompt", "extract_image")

CONTEXT_PHRASES: dict[str, str] = {
    AssetContext.avatar: "circular crop, centered subject, suitable for profile picture, 1:1 aspect ratio",
    AssetContext.icon: "simple, recognizable, works at small sizes, transparent background, 1:1 aspect ratio",
    AssetContext.hero: (
        "16:9 aspect ratio, 4K resolution, ultra high quality, cinematic, wide shot, suitable for header background"
    ),
    AssetContext.card: "16:9 aspect ratio, high quality, balanced composition, suitable for card thumbnail",
    AssetContext.general: "16:9 aspect ratio, 4K resolution, ultra high quality, professional, web-ready",
}

THEME_PHRASES: dict[str, str] = {
    AssetTheme.dark: "designed for dark UI, high contrast, vibrant colors against dark backgrounds, dramatic lighting",
    AssetTheme.light: "designed for light UI, soft colors, works on white backgrounds, bright and airy",
}

NEUTRAL_THEME = "neutral palette, works on any background"
QUALITY_SUFFIX = "4K, ultra detailed, professional photography quality"
DEFAULT_ASSET_MODEL = "gemini-2.0-flash-preview-image-generation"

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def build_asset_prompt(prompt: str, context: str = "general", theme: str = "dark") -> str:
    """Unknown context or theme values fall back to the default phrases."""
    context_phrase = CONTEXT_PHRASES.get(context, CONTEXT_PHRASES[AssetContext.general])
    theme_phrase = THEME_PHRASES.get(theme, NEUTRAL_THEME)
    return f"{prompt}. {context_phrase}. {theme_phrase}. {QUALITY_SUFFIX}"


def extract_image(response: Any) -> AssetResult | None:
    """First part with inline data or a file reference wins."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            return AssetResult(success=True, image=data, mime_type=inline.mime_type or "image/png")
        file_data = getattr(part, "file_data", None)
        if file_data is not None and getattr(file_data, "file_uri", None):
            return AssetResult(success=True, url=file_data.file_uri, mime_type=file_data.mime_type)
    return None


class AssetService:
    def __init__(self, client: Any = None, ledger: UsageLedger | None = None, model: str | None = None):
        self._client = client
        self.ledger = ledger
        self.model = model or settings.ARTIST_MODEL

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_ai_client()
        return self._client

    async def generate(
        self,
        prompt: str,
        context: str = "general",
        theme: str = "dark",
        output_path: str | Path | None = None,
    ) -> AssetResult:
        """
        Generate one image. Returns ``error_type="budget"`` without any
        network call when the ledger cannot cover the estimated cost.
        """
        if not prompt or not prompt.strip():
            return AssetResult(success=False, error="Missing prompt", error_type=ErrorType.input)

        if self.ledger is not None:
            check = self.ledger.check_budget(settings.ASSET_ESTIMATED_COST)
            if not check.allowed:
                logger.warning(f"Asset generation blocked: remaining budget ${check.remaining:.4f}")
                return AssetResult(
                    success=False,
                    error=f"Budget exceeded. Remaining: ${check.remaining:.4f}",
                    error_type=ErrorType.budget,
                    budget_remaining=check.remaining,
                )

        full_prompt = build_asset_prompt(prompt, context, theme)
        logger.info(f"Artist: generating {context}/{theme} asset: {full_prompt[:100]}")

        try:
            response = await generate(
                self.client,
                model=self.model,
                contents=full_prompt,
                config=GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
                label="artist",
            )
        except Exception as exc:
            logger.exception("Artist call failed")
            return AssetResult(success=False, error=str(exc) or type(exc).__name__, error_type=ErrorType.transport)

        result = extract_image(response)
        if result is None:
            logger.warning("Artist: no image data in response")
            return AssetResult(success=False, error="No image data in response", error_type=ErrorType.no_image)

        if self.ledger is not None:
            tracked = await self.ledger.track_async(
                model=self.model, endpoint="generate-asset", is_image=True, prompt=prompt
            )
            result = result.model_copy(update={"cost": tracked.cost, "budget_remaining": tracked.budget_remaining})

        if output_path is not None and result.image is not None:
            path = await write_bytes(output_path, result.image)
            logger.info(f"Artist: saved {len(result.image)} bytes to {path}")
            result = result.model_copy(update={"path": path})
        return result

    async def save_asset(self, image: str, prompt: str | None = None, filename: str | None = None) -> SavedAsset:
        """Decode a base64 image (optionally a data URL) into the assets directory."""
        try:
            data = base64.b64decode(_DATA_URL_PREFIX.sub("", image.strip()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Invalid base64 image data") from exc
        if not data:
            raise ValueError("Missing image data")

        if filename:
            name = safe_filename(filename)
        else:
            name = f"asset-{datetime.now(UTC).strftime('%Y-%m-%dT%H-%M-%S-%f')}.png"
        path = await write_bytes(get_assets_dir() / name, data)

        if self.ledger is not None:
            await self.ledger.track_asset_async(
                filename=name,
                prompt=prompt or "No prompt",
                model=DEFAULT_ASSET_MODEL,
                path=path,
            )
        logger.info(f"Asset saved: {path}")
        return SavedAsset(filename=name, path=path, size=len(data))

    async def list_assets(self) -> list[SavedAsset]:
        """Saved image files, newest first."""
        return await asyncio.to_thread(_scan_assets, get_assets_dir())


def _scan_assets(directory: Path) -> list[SavedAsset]:
    if not directory.is_dir():
        return []
    extensions = {e.lower() for e in settings.ASSET_EXTENSIONS}
    assets = []
    for path in directory.iterdir():
        if not path.is_file() or path.suffix.lower() not in extensions:
            continue
        stat = path.stat()
        assets.append(
            SavedAsset(
                filename=path.name,
                path=str(path),
                size=stat.st_size,
                created=datetime.fromtimestamp(stat.st_mtime, UTC),
            )
        )
    assets.sort(key=lambda a: a.created, reverse=True)
    return assets
