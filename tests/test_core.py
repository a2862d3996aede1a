import json
from datetime import datetime
from types import SimpleNamespace

import httpx
import pytest
from fakes import text_response
from google.genai import errors as genai_errors

from flowstate.core.ai import estimate_tokens, token_usage
from flowstate.core.cache import fingerprint
from flowstate.core.config import settings
from flowstate.core.log import log_serializer
from flowstate.core.retry import is_transient, with_retry
from flowstate.core.storage import preview_path_for, safe_filename, write_text


def api_error(cls, code: int):
    return cls(code, {"error": {"code": code, "message": "boom", "status": "X"}})


class Flaky:
    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


async def test_transient_errors_are_retried():
    fn = Flaky(ConnectionError("reset"), TimeoutError())
    assert await with_retry(fn, max_retries=2, base_delay=0) == "ok"
    assert fn.calls == 3


async def test_retries_are_capped():
    fn = Flaky(ConnectionError("a"), ConnectionError("b"), ConnectionError("c"))
    with pytest.raises(ConnectionError, match="b"):
        await with_retry(fn, max_retries=1, base_delay=0)
    assert fn.calls == 2


async def test_non_transient_errors_are_not_retried():
    fn = Flaky(ValueError("bad request"))
    with pytest.raises(ValueError):
        await with_retry(fn, max_retries=3, base_delay=0)
    assert fn.calls == 1


def test_is_transient():
    assert is_transient(api_error(genai_errors.ServerError, 503))
    assert is_transient(api_error(genai_errors.ClientError, 429))
    assert not is_transient(api_error(genai_errors.ClientError, 400))
    assert is_transient(OSError())
    assert is_transient(httpx.ConnectError("refused"))
    assert is_transient(httpx.ReadTimeout("slow"))
    assert not is_transient(RuntimeError())


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abcde") == 2


def test_token_usage_prefers_metadata():
    assert token_usage(text_response("x", prompt_tokens=120, output_tokens=30), "p" * 400) == (120, 30)
    assert token_usage(text_response("x"), "p" * 400, "o" * 8) == (100, 2)
    assert token_usage(SimpleNamespace(), "abcd", "") == (1, 0)


def test_fingerprint_uses_markup_prefix():
    prefix = "<button class='cta'>" + "x" * 300
    assert fingerprint(prefix) == fingerprint(prefix[:200] + "different tail")
    assert fingerprint("<a>") != fingerprint("<b>")


def test_preview_path_for():
    assert preview_path_for("/src/Card.jsx").name == "Card.flowstate-preview.jsx"
    assert preview_path_for("Makefile").name == "Makefile.flowstate-preview"


def test_safe_filename():
    assert safe_filename("hero image (1).png") == "hero_image__1_.png"


@pytest.mark.parametrize("name", [".", "..", "..."])
def test_safe_filename_rejects_dot_names(name):
    with pytest.raises(ValueError):
        safe_filename(name)


async def test_write_text_creates_parents(tmp_path):
    path = await write_text(tmp_path / "a" / "b" / "out.txt", "hello")
    assert (tmp_path / "a" / "b" / "out.txt").read_text() == "hello"
    assert path.endswith("out.txt")


def test_log_serializer(monkeypatch):
    monkeypatch.setattr(settings, "LOG_MESSAGE_MAX_LEN", 10)
    record = {
        "time": datetime(2024, 5, 1, 12, 30, 15, 123456),
        "level": SimpleNamespace(name="INFO"),
        "name": "flowstate.orchestration.orchestrator",
        "message": "Heal started: 1200 chars",
        "extra": {"heal_id": "01HX", "iteration": 2},
    }

    entry = json.loads(log_serializer(record))

    assert entry["asctime"] == "2024-05-01 12:30:15,123"
    assert entry["levelname"] == "INFO"
    assert entry["message"] == "Heal st..."
    assert entry["context"] == {"heal_id": "01HX", "iteration": "2"}
    assert "correlation_id" not in entry
