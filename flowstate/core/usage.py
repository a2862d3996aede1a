"""
Usage ledger: API call counts, token estimates, cost and budget.

The ledger is a single JSON document persisted after every mutation.
One instance is created at startup and handed to every service that
makes paid calls. Async callers use the ``*_async`` variants, which run
the locked write on a worker thread.
"""

from __future__ import annotations

import asyncio
import os
import threading
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from flowstate.core.config import settings
from flowstate.core.errors import BudgetExceededError, LedgerStorageError
from flowstate.core.log import logger
from flowstate.schema.usage import (
    AssetRecord,
    BudgetCheck,
    CallRecord,
    EndpointUsage,
    LedgerData,
    ModelPricing,
    ModelUsage,
    SessionInfo,
    SessionSummary,
    TrackResult,
    UsageSummary,
)

__all__ = ("PRICING", "UsageLedger")

# Per 1K tokens, or flat per generated image
PRICING: dict[str, ModelPricing] = {
    "gemini-3-pro-preview": ModelPricing(input=0.00025, output=0.0005),
    "gemini-3-pro-image-preview": ModelPricing(per_image=0.02),
    "gemini-2.0-flash-preview-image-generation": ModelPricing(per_image=0.02),
    "gemini-2.0-flash": ModelPricing(input=0.0001, output=0.0002),
}

DEFAULT_PRICING_MODEL = "gemini-2.0-flash"
DEFAULT_IMAGE_PRICE = 0.02
PROMPT_PREVIEW_LEN = 100


class UsageLedger:
    """Thread-safe, write-through usage ledger."""

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        budget: float | None = None,
        history_limit: int | None = None,
        pricing: dict[str, ModelPricing] | None = None,
    ):
        self.path = Path(path or settings.USAGE_FILE)
        self.default_budget = settings.DEFAULT_BUDGET if budget is None else budget
        self.history_limit = history_limit or settings.USAGE_HISTORY_LIMIT
        self.pricing = pricing if pricing is not None else PRICING
        self._lock = threading.Lock()
        self._data = self._load()

    # ── persistence ──────────────────────────────────────────────────────

    def _default_data(self, budget: float | None = None) -> LedgerData:
        return LedgerData(session=SessionInfo(budget=self.default_budget if budget is None else budget))

    def _load(self) -> LedgerData:
        if not self.path.exists():
            return self._default_data()
        try:
            return LedgerData.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as exc:
            logger.error(f"Failed to load usage data from {self.path}: {exc}; starting a fresh ledger")
            return self._default_data()

    def _save(self) -> None:
        """Atomically replace the ledger file. Caller holds the lock."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(self._data.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.exception(f"Failed to persist usage ledger to {self.path}")
            raise LedgerStorageError(f"Cannot write usage ledger: {exc}") from exc

    # ── accounting ───────────────────────────────────────────────────────

    def price_call(self, model: str, input_tokens: int = 0, output_tokens: int = 0, is_image: bool = False) -> float:
        """Estimated cost of one call."""
        pricing = self.pricing.get(model) or self.pricing.get(DEFAULT_PRICING_MODEL) or ModelPricing()
        if is_image:
            return pricing.per_image if pricing.per_image is not None else DEFAULT_IMAGE_PRICE
        return (input_tokens / 1000) * pricing.input + (output_tokens / 1000) * pricing.output

    def _remaining(self) -> float:
        return self._data.session.budget - self._data.session.budget_used

    def track(
        self,
        *,
        model: str,
        endpoint: str,
        input_tokens: int = 0,
        output_tokens: int = 0,
        is_image: bool = False,
        prompt: str = "",
    ) -> TrackResult:
        """Record one API call. The only writer of call counters."""
        cost = self.price_call(model, input_tokens, output_tokens, is_image)

        with self._lock:
            data = self._data
            totals = data.totals
            totals.api_calls += 1
            totals.input_tokens += input_tokens
            totals.output_tokens += output_tokens
            totals.estimated_cost += cost
            if is_image:
                totals.images_generated += 1
            data.session.budget_used += cost

            per_model = data.by_model.setdefault(model, ModelUsage())
            per_model.calls += 1
            per_model.input_tokens += input_tokens
            per_model.output_tokens += output_tokens
            per_model.cost += cost

            per_endpoint = data.by_endpoint.setdefault(endpoint, EndpointUsage())
            per_endpoint.calls += 1
            per_endpoint.cost += cost

            data.history.insert(
                0,
                CallRecord(
                    model=model,
                    endpoint=endpoint,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    is_image=is_image,
                    cost=cost,
                    prompt=prompt[:PROMPT_PREVIEW_LEN],
                ),
            )
            del data.history[self.history_limit :]

            self._save()
            remaining = self._remaining()

        logger.debug(f"Tracked {endpoint} call on {model}: ${cost:.5f}, remaining ${remaining:.4f}")
        return TrackResult(cost=cost, budget_remaining=remaining, over_budget=remaining < 0)

    async def track_async(self, **kwargs: Any) -> TrackResult:
        """:meth:`track` on a worker thread, so the file write does not block the event loop."""
        return await asyncio.to_thread(self.track, **kwargs)

    def track_asset(self, *, filename: str, prompt: str, model: str, path: str) -> AssetRecord:
        record = AssetRecord(filename=filename, prompt=prompt, model=model, path=path)
        with self._lock:
            self._data.assets.insert(0, record)
            self._save()
        return record

    async def track_asset_async(self, **kwargs: Any) -> AssetRecord:
        return await asyncio.to_thread(self.track_asset, **kwargs)

    # ── budget ───────────────────────────────────────────────────────────

    def check_budget(self, estimated_cost: float = 0.01) -> BudgetCheck:
        with self._lock:
            remaining = self._remaining()
        return BudgetCheck(allowed=remaining >= estimated_cost, remaining=remaining, estimated_cost=estimated_cost)

    def require_budget(self, estimated_cost: float) -> BudgetCheck:
        """Like :meth:`check_budget`, but raises when the call is not allowed."""
        check = self.check_budget(estimated_cost)
        if not check.allowed:
            raise BudgetExceededError(check.remaining, estimated_cost)
        return check

    def set_budget(self, amount: float) -> None:
        if amount <= 0:
            raise ValueError("Budget must be a positive amount")
        with self._lock:
            self._data.session.budget = amount
            self._save()
        logger.info(f"Budget set to ${amount:.2f}")

    def reset(self) -> None:
        """Clear counters, history and assets. The budget ceiling is kept."""
        with self._lock:
            self._data = self._default_data(budget=self._data.session.budget)
            self._save()
        logger.info("Usage session reset")

    # ── read ─────────────────────────────────────────────────────────────

    def summary(self) -> UsageSummary:
        with self._lock:
            data = self._data.model_copy(deep=True)

        session = data.session
        budget_percent = (session.budget_used / session.budget) * 100 if session.budget > 0 else 100.0
        return UsageSummary(
            schema_version=data.schema_version,
            session=SessionSummary(
                **session.model_dump(),
                budget_remaining=session.budget - session.budget_used,
                budget_percent=round(budget_percent, 1),
            ),
            totals=data.totals,
            by_model=data.by_model,
            by_endpoint=data.by_endpoint,
            history=data.history,
            assets=data.assets,
        )
