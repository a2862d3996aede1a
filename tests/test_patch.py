from fakes import FakeClient, text_response

from flowstate.fixes.code import PatchService, render_defects
from flowstate.schema.defect import Defect

CODE = "export const Button = () => <button style={{ padding: 4 }}>Go</button>;"
FIXED = "export const Button = () => <button style={{ padding: 12 }}>Go</button>;"


async def test_empty_defects_short_circuits():
    client = FakeClient()
    result = await PatchService(client=client).patch(CODE, [])

    assert result.success is False
    assert result.error == "No defects provided"
    assert client.calls == []


async def test_empty_code_short_circuits():
    client = FakeClient()
    result = await PatchService(client=client).patch("  ", ["padding"])

    assert result.success is False
    assert client.calls == []


async def test_patch_returns_fenced_code(ledger):
    client = FakeClient([text_response(f"```jsx\n{FIXED}\n```")])
    service = PatchService(client=client, ledger=ledger)

    result = await service.patch(CODE, [Defect(id="d1", element="button", issue="Padding too small")])

    assert result.success
    assert result.code == FIXED
    prompt = client.calls[0]["contents"]
    assert CODE in prompt
    assert "1. Padding too small [button]" in prompt
    assert ledger.summary().by_endpoint["patch"].calls == 1


async def test_short_answer_fails():
    result = await PatchService(client=FakeClient([text_response("Done!")])).patch(CODE, ["x"])

    assert result.success is False
    assert result.code is None


async def test_model_error_is_returned():
    result = await PatchService(client=FakeClient([ValueError("quota")])).patch(CODE, ["x"])
    assert result.success is False
    assert result.error == "quota"


def test_render_defects_mixes_strings_and_objects():
    rendered = render_defects(
        [
            "Header misaligned",
            Defect(id="a", element="input", element_text="Email", issue="Cramped", expected="12px 16px"),
            {"issue": "Low contrast", "why": "readability"},
        ]
    )
    assert rendered.splitlines() == [
        "1. Header misaligned",
        '2. Cramped [input "Email"]; expected: 12px 16px',
        "3. Low contrast; why: readability",
    ]


async def test_patch_file_writes_preview_only(tmp_path):
    source = tmp_path / "Card.jsx"
    source.write_text(CODE)
    service = PatchService(client=FakeClient([text_response(FIXED)]))

    result = await service.patch_file(source, ["padding"])

    preview = tmp_path / "Card.flowstate-preview.jsx"
    assert result.preview_path == str(preview)
    assert preview.read_text() == FIXED
    assert source.read_text() == CODE


async def test_patch_file_apply_overwrites(tmp_path):
    source = tmp_path / "Card.jsx"
    source.write_text(CODE)
    service = PatchService(client=FakeClient([text_response(FIXED)]))

    await service.patch_file(source, ["padding"], apply=True)

    assert source.read_text() == FIXED


async def test_patch_file_missing(tmp_path):
    client = FakeClient()
    result = await PatchService(client=client).patch_file(tmp_path / "Missing.jsx", ["x"])

    assert result.success is False
    assert client.calls == []
