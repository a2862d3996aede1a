from fakes import FakeClient, text_response

from flowstate.core.config import settings
from flowstate.fixes.chat import build_contents, design_chat
from flowstate.schema.chat import ChatMessage


def test_history_roles_map_to_user_and_model():
    history = [
        ChatMessage(role="user", content="What is padding?"),
        ChatMessage(role="assistant", content="Space inside the border."),
    ]

    contents = build_contents("And margin?", history)

    assert [c.role for c in contents] == ["user", "model", "user"]
    assert contents[-1].parts[0].text == "And margin?"


async def test_chat_reply_is_tracked(ledger):
    client = FakeClient([text_response("Use **12px 24px**.", prompt_tokens=200, output_tokens=40)])

    reply = await design_chat("How much padding on a button?", context="spacing", client=client, ledger=ledger)

    assert reply.success is True
    assert reply.response == "Use **12px 24px**."
    call = client.aio.models.calls[0]
    assert call["model"] == settings.CHAT_MODEL
    assert 'learning about "spacing"' in call["config"].system_instruction
    assert ledger.summary().by_endpoint["chat"].calls == 1
    assert reply.usage.totals.api_calls == 1


async def test_chat_without_context_has_no_context_line():
    client = FakeClient([text_response("Sure.")])

    await design_chat("hi", client=client)

    assert "Current context" not in client.aio.models.calls[0]["config"].system_instruction


async def test_chat_failure(ledger):
    reply = await design_chat("hi", client=FakeClient([RuntimeError("quota")]), ledger=ledger)

    assert reply.success is False
    assert reply.error == "quota"
    assert ledger.summary().totals.api_calls == 0
