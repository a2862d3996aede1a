"""Shared pytest fixtures."""

import pytest
from aiocache import SimpleMemoryCache

from flowstate.core.config import settings
from flowstate.core.usage import UsageLedger


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every writable path at a temp dir and disable retry backoff."""
    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "USAGE_FILE", str(tmp_path / "usage-data.json"))
    monkeypatch.setattr(settings, "ASSETS_DIR", str(tmp_path / "generated-assets"))
    monkeypatch.setattr(settings, "AI_API_MAX_RETRIES", 0)
    monkeypatch.setattr(settings, "APP_AUTH_KEY", None)
    return settings


@pytest.fixture
def ledger(tmp_path) -> UsageLedger:
    return UsageLedger(tmp_path / "ledger.json")


@pytest.fixture
def memory_cache() -> SimpleMemoryCache:
    return SimpleMemoryCache()
