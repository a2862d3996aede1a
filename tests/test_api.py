import base64

import pytest
from aiocache import SimpleMemoryCache
from fakes import FakeClient, image_response, inline_part, report_json, text_response
from fastapi.testclient import TestClient

from flowstate.core.config import settings
from flowstate.diagnosis.visual import InspectionService
from flowstate.fixes.assets import AssetService
from flowstate.fixes.code import PatchService
from flowstate.main import app
from flowstate.orchestration import HealOrchestrator

SHOT = base64.b64encode(b"\x89PNG\r\n\x1a\nscreenshot").decode()
CODE = "export const Card = () => <button style={{ padding: 2 }}>Go</button>;"
FIXED = "export const Card = () => <button style={{ padding: 12 }}>Go</button>;"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def install(inspect=None, patch=None, artist=None, css=None) -> dict[str, FakeClient]:
    """Swap the lifespan services for ones backed by fake model clients."""
    fakes = {
        "inspect": FakeClient(inspect),
        "patch": FakeClient(patch),
        "artist": FakeClient(artist),
        "css": FakeClient(css),
    }
    state = app.state
    state.inspector = InspectionService(client=fakes["inspect"], ledger=state.ledger)
    state.surgeon = PatchService(client=fakes["patch"], ledger=state.ledger)
    state.artist = AssetService(client=fakes["artist"], ledger=state.ledger)
    state.ai_client = fakes["css"]
    state.orchestrator = HealOrchestrator(
        state.inspector, state.surgeon, analyzer=state.analyzer, cache=SimpleMemoryCache()
    )
    return fakes


def test_health_and_index(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["version"] == settings.PROJECT_VERSION

    assert health.json()["budget_remaining"] == settings.DEFAULT_BUDGET
    assert "X-Process-Time-Ms" in health.headers

    assert client.get("/").json()["message"] == "FlowState heal service"


def test_heal(client):
    fakes = install(inspect=[text_response(report_json())], patch=[text_response(FIXED)])

    response = client.post(
        "/v1/heal",
        json={"screenshot": SHOT, "code": CODE, "options": {"verify": False}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["final_code"] == FIXED
    assert body["summary"] == "Fixed 1 defects."
    assert body["preview_path"]
    assert len(fakes["inspect"].calls) == 1
    assert app.state.ledger.summary().by_endpoint["patch"].calls == 1


def test_heal_rejects_bad_base64(client):
    install()
    response = client.post("/v1/heal", json={"screenshot": "not base64!!", "code": CODE})
    assert response.status_code == 400


def test_heal_rejects_oversized_screenshot(client, monkeypatch):
    install()
    monkeypatch.setattr(settings, "MAX_SCREENSHOT_SIZE_MB", 0)
    response = client.post("/v1/heal", json={"screenshot": SHOT, "code": CODE})
    assert response.status_code == 413


def test_inspect_requires_screenshot_or_context(client):
    install()
    response = client.post("/v1/inspect", json={})
    assert response.status_code == 400


def test_inspect_context_without_model(client):
    fakes = install()
    response = client.post(
        "/v1/inspect",
        json={"context": {"element": "button", "text": "Go", "currentStyles": {"padding": "4px 8px"}}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["looks_good"] is False
    assert fakes["inspect"].calls == []


def test_inspect_annotations(client):
    fakes = install(inspect=[text_response(report_json(looks_good=True))])

    response = client.post(
        "/v1/inspect-annotations",
        json={"screenshot": SHOT, "annotations": ["header is crooked"], "voice_instructions": ["make it pop"]},
    )

    assert response.status_code == 200
    assert response.json()["annotations"] == ["header is crooked"]
    request_text = fakes["inspect"].calls[0]["contents"][1]
    assert "header is crooked" in request_text
    assert '"make it pop"' in request_text


def test_analyze_and_design_system(client):
    install()
    baseline = client.post("/v1/design-system", json={"buttons": [{"padding": "14px 20px"}], "inputs": []})
    assert baseline.json()["buttonPadding"] == "14px 20px"

    snapshot = {"tag": "button", "text": "Go", "html": "<button>Go</button>", "styles": {"padding": "3px"}}
    analysis = client.post("/v1/analyze", json={"snapshot": snapshot}).json()
    assert analysis["local_count"] == 1
    assert analysis["defects"][0]["expected"] == "14px 20px"

    assert client.delete("/v1/design-system").status_code == 204
    snapshot["html"] = "<button>Go again</button>"
    analysis = client.post("/v1/analyze", json={"snapshot": snapshot}).json()
    assert analysis["defects"][0]["expected"] == "12px 24px"


def test_fix_accepts_string_defects(client):
    fakes = install(patch=[text_response(f"```jsx\n{FIXED}\n```")])

    response = client.post("/v1/fix", json={"code": CODE, "defects": ["Button padding too small"]})

    assert response.json() == {"success": True, "code": FIXED, "error": None, "preview_path": None}
    assert "1. Button padding too small" in fakes["patch"].calls[0]["contents"]


def test_diff(client):
    response = client.post("/v1/diff", json={"original": "a\nb\nc", "fixed": "a\nB\nc\nd"})

    body = response.json()
    assert body["total_changes"] == 2
    assert [(d["line"], d["type"]) for d in body["diff"]] == [(2, "changed"), (4, "added")]


def test_diff_requires_both_sides(client):
    assert client.post("/v1/diff", json={"original": "", "fixed": "x"}).status_code == 400


def test_generate_asset(client):
    install(artist=[image_response(inline_part(b"PNGDATA"))])

    response = client.post("/v1/generate-asset", json={"prompt": "smiling robot", "context": "avatar"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert base64.b64decode(body["image"]) == b"PNGDATA"
    assert app.state.ledger.summary().totals.images_generated == 1


def test_generate_asset_over_budget(client):
    fakes = install()
    app.state.ledger.set_budget(0.001)

    response = client.post("/v1/generate-asset", json={"prompt": "smiling robot"})

    assert response.status_code == 402
    body = response.json()
    assert body["success"] is False
    assert body["error_type"] == "budget"
    assert body["budget_remaining"] == pytest.approx(0.001)
    assert fakes["artist"].calls == []


def test_generate_asset_without_image(client):
    install(artist=[text_response("I cannot draw that")])

    response = client.post("/v1/generate-asset", json={"prompt": "smiling robot"})

    assert response.status_code == 502
    assert response.json()["error_type"] == "no_image"


def test_generate_asset_file(client):
    install(artist=[image_response(inline_part(b"PNGDATA"))])

    response = client.post("/v1/generate-asset-file", json={"prompt": "robot", "filename": "../robot.png"})

    body = response.json()
    assert response.status_code == 200
    assert body["path"].endswith(".._robot.png")
    listed = client.get("/v1/assets").json()
    assert [a["filename"] for a in listed] == [body["path"].rsplit("/", 1)[-1]]


def test_save_and_list_assets(client):
    install()
    image = "data:image/png;base64," + base64.b64encode(b"PNGDATA").decode()

    saved = client.post("/v1/assets", json={"image": image, "prompt": "logo", "filename": "logo.png"})
    assert saved.status_code == 200
    assert saved.json()["size"] == 7

    assert [a["filename"] for a in client.get("/v1/assets").json()] == ["logo.png"]
    assert app.state.ledger.summary().assets[0].prompt == "logo"


def test_save_asset_rejects_garbage(client):
    install()
    assert client.post("/v1/assets", json={"image": "%%%"}).status_code == 400


def test_suggest_css(client):
    install(css=[text_response("```css\npadding: 12px 24px;\nborder-radius: 8px;\n```")])

    response = client.post("/v1/suggest-css", json={"element": "button", "currentCSS": "padding: 2px;"})

    assert response.status_code == 200
    assert response.json()["styles"] == {"padding": "12px 24px", "border-radius": "8px"}


def test_suggest_css_failure(client):
    install(css=[RuntimeError("quota")])
    response = client.post("/v1/suggest-css", json={"element": "button", "currentCSS": "padding: 2px;"})
    assert response.status_code == 502


def test_usage_endpoints(client):
    install()
    summary = client.get("/v1/usage").json()
    assert summary["session"]["budget"] == settings.DEFAULT_BUDGET
    assert summary["session"]["budget_remaining"] == settings.DEFAULT_BUDGET

    check = client.post("/v1/usage/check", json={"estimated_cost": 0.5}).json()
    assert check == {"allowed": True, "remaining": settings.DEFAULT_BUDGET, "estimated_cost": 0.5}

    assert client.post("/v1/usage/budget", json={"amount": 3}).json() == {"success": True, "new_budget": 3.0}
    assert client.post("/v1/usage/budget", json={"amount": 0}).status_code == 400
    assert client.post("/v1/usage/budget", json={"amount": -1}).status_code == 400

    reset = client.post("/v1/usage/reset").json()
    assert reset == {"success": True, "message": "Usage session reset"}
    assert client.get("/v1/usage").json()["session"]["budget"] == 3.0


def test_auth_required_when_key_configured(client, monkeypatch):
    install()
    monkeypatch.setattr(settings, "APP_AUTH_KEY", "s3cret")

    assert client.get("/v1/usage").status_code == 401
    assert client.get("/v1/usage", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/v1/usage", headers={"Authorization": "Bearer s3cret"}).status_code == 200
    assert client.get("/health").status_code == 200


def test_generate_asset_file_rejects_dot_name(client):
    fakes = install(artist=[image_response(inline_part(b"PNGDATA"))])

    response = client.post("/v1/generate-asset-file", json={"prompt": "robot", "filename": ".."})

    assert response.status_code == 400
    assert fakes["artist"].calls == []


def test_chat(client):
    fakes = install(css=[text_response("Aim for **4.5:1** contrast.")])

    response = client.post(
        "/v1/chat",
        json={
            "message": "What contrast do I need?",
            "context": "accessibility",
            "history": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["response"] == "Aim for **4.5:1** contrast."
    assert len(fakes["css"].calls[0]["contents"]) == 3
    assert app.state.ledger.summary().by_endpoint["chat"].calls == 1


def test_chat_rejects_empty_message(client):
    install()
    assert client.post("/v1/chat", json={"message": ""}).status_code == 422


def test_chat_failure(client):
    install(css=[RuntimeError("quota")])
    assert client.post("/v1/chat", json={"message": "hi"}).status_code == 502


@pytest.fixture
def project(tmp_path, monkeypatch):
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    monkeypatch.setattr(settings, "PROJECT_ROOT", str(root))
    monkeypatch.setattr(settings, "APP_AUTH_KEY", "s3cret")
    return root


AUTH = {"Authorization": "Bearer s3cret"}


@pytest.mark.parametrize("outside", ["absolute", "../elsewhere/victim.conf"])
def test_heal_rejects_code_path_outside_project(client, project, tmp_path, outside):
    fakes = install(inspect=[text_response(report_json())], patch=[text_response(FIXED)])
    victim = tmp_path / "elsewhere" / "victim.conf"
    victim.parent.mkdir()
    victim.write_text("untouched")
    code_path = str(victim) if outside == "absolute" else outside

    response = client.post(
        "/v1/heal",
        json={"screenshot": SHOT, "code": CODE, "code_path": code_path, "options": {"auto_apply": True}},
        headers=AUTH,
    )

    assert response.status_code == 400
    assert victim.read_text() == "untouched"
    assert fakes["inspect"].calls == []


def test_heal_code_path_needs_auth_key(client, project, monkeypatch):
    install()
    monkeypatch.setattr(settings, "APP_AUTH_KEY", None)

    response = client.post("/v1/heal", json={"screenshot": SHOT, "code": CODE, "code_path": "src/Card.jsx"})

    assert response.status_code == 403


def test_heal_auto_apply_inside_project(client, project):
    install(inspect=[text_response(report_json())], patch=[text_response(FIXED)])
    source = project / "src" / "Card.jsx"
    source.write_text(CODE)

    response = client.post(
        "/v1/heal",
        json={
            "screenshot": SHOT,
            "code": CODE,
            "code_path": "src/Card.jsx",
            "options": {"verify": False, "auto_apply": True},
        },
        headers=AUTH,
    )

    assert response.status_code == 200
    assert source.read_text() == FIXED
    assert (project / "src" / "Card.flowstate-preview.jsx").read_text() == FIXED
