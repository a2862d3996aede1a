"""
Local disk storage for previews and generated assets.
"""

import os
import re
from pathlib import Path

import aiofiles

from flowstate.core.config import settings

__all__ = (
    "get_assets_dir",
    "get_previews_dir",
    "preview_path_for",
    "safe_filename",
    "write_bytes",
    "write_text",
)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def get_assets_dir() -> Path:
    return Path(settings.ASSETS_DIR)


def get_previews_dir() -> Path:
    return Path(settings.STORAGE_DIR) / "previews"


def preview_path_for(code_path: str | Path) -> Path:
    """``Card.jsx`` -> ``Card.flowstate-preview.jsx`` in the same directory."""
    p = Path(code_path)
    return p.with_name(f"{p.stem}{settings.PREVIEW_SUFFIX}{p.suffix}")


def safe_filename(filename: str) -> str:
    """Replace unsafe characters; names made only of dots are rejected."""
    name = _UNSAFE_CHARS.sub("_", filename)
    if not name.strip("."):
        raise ValueError(f"Invalid filename: {filename!r}")
    return name


async def write_text(path: str | Path, content: str) -> str:
    """Write text to *path*, creating parent directories. Returns the path."""
    path = Path(path)
    os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)
    return str(path)


async def write_bytes(path: str | Path, content: bytes) -> str:
    """Write binary content to *path*, creating parent directories. Returns the path."""
    path = Path(path)
    os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, "wb") as f:
        await f.write(content)
    return str(path)
