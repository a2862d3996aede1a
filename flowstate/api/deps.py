"""
Shared dependencies for the REST API.
"""

import base64
import binascii
import secrets
from pathlib import Path

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from flowstate.core.config import settings
from flowstate.core.usage import UsageLedger
from flowstate.diagnosis.local import LocalAnalyzer
from flowstate.diagnosis.visual import InspectionService
from flowstate.fixes.assets import AssetService
from flowstate.fixes.code import PatchService
from flowstate.orchestration import HealOrchestrator

_bearer_scheme = HTTPBearer(auto_error=False)


async def verify_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),  # noqa: B008
) -> None:
    """Validate Bearer token against APP_AUTH_KEY. No key configured means an open API."""
    if not settings.APP_AUTH_KEY:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.APP_AUTH_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def decode_screenshot(data: str) -> bytes:
    """Decode a base64 screenshot (a data URL prefix is tolerated) or fail with 400."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 screenshot") from exc
    if not raw:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty screenshot")
    if len(raw) > settings.MAX_SCREENSHOT_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Screenshot too large. Maximum size: {settings.MAX_SCREENSHOT_SIZE_MB} MB",
        )
    return raw


def resolve_code_path(code_path: str) -> Path:
    """
    Resolve a client-supplied source path under ``PROJECT_ROOT``.

    Writing next to (or over) a source file needs both an auth key and a
    project root; a path that resolves outside the root is rejected.
    """
    if not settings.APP_AUTH_KEY or not settings.PROJECT_ROOT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="code_path requires FLOWSTATE_APP_AUTH_KEY and FLOWSTATE_PROJECT_ROOT to be set",
        )
    root = Path(settings.PROJECT_ROOT).resolve()
    path = (root / code_path).resolve()
    if not path.is_relative_to(root):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="code_path is outside the project root")
    return path


def get_ledger(request: Request) -> UsageLedger:
    return request.app.state.ledger


def get_inspector(request: Request) -> InspectionService:
    return request.app.state.inspector


def get_surgeon(request: Request) -> PatchService:
    return request.app.state.surgeon


def get_artist(request: Request) -> AssetService:
    return request.app.state.artist


def get_analyzer(request: Request) -> LocalAnalyzer:
    return request.app.state.analyzer


def get_orchestrator(request: Request) -> HealOrchestrator:
    return request.app.state.orchestrator
