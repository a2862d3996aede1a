import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from flowstate.core.errors import BudgetExceededError, LedgerStorageError
from flowstate.core.usage import UsageLedger
from flowstate.schema.usage import LEDGER_SCHEMA_VERSION


def test_token_call_accounting(ledger):
    result = ledger.track(model="gemini-3-pro-preview", endpoint="inspect", input_tokens=1000, output_tokens=500)

    summary = ledger.summary()
    assert result.cost == pytest.approx(0.0005)
    assert summary.totals.estimated_cost == pytest.approx(0.0005)
    assert summary.totals.api_calls == 1
    assert summary.totals.input_tokens == 1000
    assert summary.by_model["gemini-3-pro-preview"].calls == 1
    assert summary.by_endpoint["inspect"].cost == pytest.approx(0.0005)


def test_image_call_is_flat_priced(ledger):
    ledger.track(model="gemini-3-pro-image-preview", endpoint="generate-asset", input_tokens=99999, is_image=True)

    totals = ledger.summary().totals
    assert totals.images_generated == 1
    assert totals.estimated_cost == pytest.approx(0.02)


def test_unknown_model_uses_default_pricing(ledger):
    cost = ledger.price_call("some-new-model", input_tokens=1000, output_tokens=1000)
    assert cost == pytest.approx(0.0003)


def test_history_is_newest_first_and_capped(tmp_path):
    ledger = UsageLedger(tmp_path / "ledger.json", history_limit=3)
    for i in range(5):
        ledger.track(model="gemini-2.0-flash", endpoint=f"e{i}", prompt="x" * 300)

    history = ledger.summary().history
    assert [h.endpoint for h in history] == ["e4", "e3", "e2"]
    assert len(history[0].prompt) == 100


def test_budget_gate(tmp_path):
    ledger = UsageLedger(tmp_path / "ledger.json", budget=0.01)

    check = ledger.check_budget(0.02)
    assert check.allowed is False
    assert check.remaining == pytest.approx(0.01)

    with pytest.raises(BudgetExceededError) as exc_info:
        ledger.require_budget(0.02)
    assert exc_info.value.estimated_cost == 0.02


def test_summary_derived_fields(tmp_path):
    ledger = UsageLedger(tmp_path / "ledger.json", budget=1.0)
    ledger.track(model="x", endpoint="y", is_image=True)

    session = ledger.summary().session
    assert session.budget_remaining == pytest.approx(0.98)
    assert session.budget_percent == 2.0


@pytest.mark.parametrize("amount", [0, -5])
def test_set_budget_rejects_non_positive(ledger, amount):
    with pytest.raises(ValueError):
        ledger.set_budget(amount)


def test_reset_keeps_budget_ceiling(ledger):
    ledger.set_budget(25)
    ledger.track(model="gemini-2.0-flash", endpoint="patch", input_tokens=10)
    ledger.track_asset(filename="a.png", prompt="p", model="m", path="/tmp/a.png")

    ledger.reset()

    summary = ledger.summary()
    assert summary.totals.api_calls == 0
    assert summary.history == []
    assert summary.assets == []
    assert summary.session.budget_used == 0
    assert summary.session.budget == 25


def test_ledger_persists_with_schema_version(tmp_path):
    path = tmp_path / "ledger.json"
    UsageLedger(path).track(model="gemini-2.0-flash", endpoint="inspect", input_tokens=1000)

    raw = json.loads(path.read_text())
    assert raw["schema_version"] == LEDGER_SCHEMA_VERSION

    reloaded = UsageLedger(path)
    assert reloaded.summary().totals.api_calls == 1


def test_corrupt_ledger_starts_fresh(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text("{not json")

    ledger = UsageLedger(path, budget=3.0)
    assert ledger.summary().session.budget == 3.0


def test_storage_failure_is_raised(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    ledger = UsageLedger(blocker / "ledger.json")

    with pytest.raises(LedgerStorageError):
        ledger.track(model="gemini-2.0-flash", endpoint="inspect")


def test_concurrent_tracking_loses_nothing(tmp_path):
    path = tmp_path / "ledger.json"
    ledger = UsageLedger(path)
    calls = 50

    def track(_):
        return ledger.track(model="gemini-2.0-flash", endpoint="inspect", input_tokens=1000, output_tokens=1000)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(track, range(calls)))

    totals = ledger.summary().totals
    assert totals.api_calls == calls
    assert totals.estimated_cost == pytest.approx(calls * 0.0003)
    reloaded = UsageLedger(path).summary().totals
    assert reloaded.api_calls == calls
    assert reloaded.estimated_cost == pytest.approx(totals.estimated_cost)


async def test_async_tracking(ledger):
    result = await ledger.track_async(model="gemini-2.0-flash", endpoint="chat", input_tokens=100, output_tokens=50)
    await ledger.track_asset_async(filename="a.png", prompt="p", model="m", path="/tmp/a.png")

    summary = ledger.summary()
    assert result.cost > 0
    assert summary.by_endpoint["chat"].calls == 1
    assert summary.assets[0].filename == "a.png"
