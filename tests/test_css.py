from fakes import FakeClient, text_response

from flowstate.fixes.css import parse_declarations, suggest_css
from flowstate.schema.element import DesignSystem


def test_simple_declarations():
    assert parse_declarations("padding: 4px;\ncolor: red") == {"padding": "4px", "color": "red"}


def test_multiline_value_with_commas():
    css = """
    box-shadow:
        0 1px 2px rgba(0, 0, 0, 0.2),
        0 4px 8px rgba(0, 0, 0, 0.1);
    margin: 0;
    """
    styles = parse_declarations(css)

    assert styles["box-shadow"] == "0 1px 2px rgba(0, 0, 0, 0.2), 0 4px 8px rgba(0, 0, 0, 0.1)"
    assert styles["margin"] == "0"


def test_separators_inside_quotes_and_parens():
    css = 'content: "a;b"; background: url(data:image/png;base64,AAA=); font-family: "Inter", sans-serif'
    styles = parse_declarations(css)

    assert styles["content"] == '"a;b"'
    assert styles["background"] == "url(data:image/png;base64,AAA=)"
    assert styles["font-family"] == '"Inter", sans-serif'


def test_comments_and_rule_block():
    css = "button { /* primary; cta */ Padding: 8px 12px; /* end */ }"
    assert parse_declarations(css) == {"padding": "8px 12px"}


def test_garbage_is_skipped():
    assert parse_declarations("just words; ;:;") == {}


async def test_suggest_css(ledger):
    client = FakeClient([text_response("```css\npadding: 12px 16px;\nborder-radius: 8px;\n```")])

    result = await suggest_css(
        "button",
        "padding: 4px;",
        system_instructions="Use 8px radius",
        design_system=DesignSystem(button_padding="12px 16px"),
        client=client,
        ledger=ledger,
    )

    assert result.success
    assert result.styles == {"padding": "12px 16px", "border-radius": "8px"}
    prompt = client.calls[0]["contents"]
    assert "button_padding: 12px 16px" in prompt
    assert "Use 8px radius" in prompt
    assert ledger.summary().by_endpoint["suggest-css"].calls == 1


async def test_suggest_css_failure():
    result = await suggest_css("div", "color: red", client=FakeClient([RuntimeError("boom")]))

    assert result.success is False
    assert result.error == "boom"
