"""
Fake genai clients and canned model responses.

The fakes mimic the surface the services use:
``client.aio.models.generate_content(model=, contents=, config=)``
returning an object with ``text``, ``usage_metadata`` and
``candidates[0].content.parts``.
"""

import json
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any


def text_response(text: str, prompt_tokens: int | None = None, output_tokens: int | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        text=text,
        usage_metadata=SimpleNamespace(prompt_token_count=prompt_tokens, candidates_token_count=output_tokens),
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(text=text)]))],
    )


def image_response(*parts: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(
        text=None,
        usage_metadata=None,
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))],
    )


def text_part(text: str) -> SimpleNamespace:
    return SimpleNamespace(text=text, inline_data=None, file_data=None)


def inline_part(data: bytes, mime_type: str = "image/png") -> SimpleNamespace:
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type), file_data=None)


def file_part(uri: str, mime_type: str = "image/png") -> SimpleNamespace:
    return SimpleNamespace(text=None, inline_data=None, file_data=SimpleNamespace(file_uri=uri, mime_type=mime_type))


def report_json(looks_good: bool = False, defects: list | None = None, asset_prompt: str | None = None) -> str:
    if defects is None:
        defects = [] if looks_good else [{"id": "defect-1", "element": "button", "issue": "Button padding too small"}]
    return json.dumps(
        {
            "looks_good": looks_good,
            "visual_defects": defects,
            "needs_asset_generation": asset_prompt is not None,
            "asset_generation_prompt": asset_prompt,
        }
    )


class FakeModels:
    """Scripted ``aio.models``: each call pops the next response (or exception)."""

    def __init__(self, responses: list[Any] | Callable[[dict], Any]):
        self.responses = responses
        self.calls: list[dict] = []

    async def generate_content(self, *, model: str, contents: Any, config: Any = None) -> Any:
        call = {"model": model, "contents": contents, "config": config}
        self.calls.append(call)
        if callable(self.responses):
            response = self.responses(call)
        else:
            if not self.responses:
                raise AssertionError("Unexpected model call")
            response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeClient:
    def __init__(self, responses: list[Any] | Callable[[dict], Any] | None = None):
        self.aio = SimpleNamespace(models=FakeModels(responses if responses is not None else []))

    @property
    def calls(self) -> list[dict]:
        return self.aio.models.calls


