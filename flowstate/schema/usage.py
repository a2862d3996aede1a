"""
Usage ledger models.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

LEDGER_SCHEMA_VERSION = 1


def _now() -> datetime:
    return datetime.now(UTC)


class ModelPricing(BaseModel):
    input: float = 0.0  # per 1K input tokens
    output: float = 0.0  # per 1K output tokens
    per_image: float | None = None


class SessionInfo(BaseModel):
    start_time: datetime = Field(default_factory=_now)
    budget: float
    budget_used: float = 0.0


class Totals(BaseModel):
    api_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    images_generated: int = 0
    estimated_cost: float = 0.0


class ModelUsage(BaseModel):
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0


class EndpointUsage(BaseModel):
    calls: int = 0
    cost: float = 0.0


class CallRecord(BaseModel):
    timestamp: datetime = Field(default_factory=_now)
    model: str
    endpoint: str
    input_tokens: int = 0
    output_tokens: int = 0
    is_image: bool = False
    cost: float = 0.0
    prompt: str = ""


class AssetRecord(BaseModel):
    timestamp: datetime = Field(default_factory=_now)
    filename: str
    prompt: str
    model: str
    path: str


class LedgerData(BaseModel):
    """Persisted ledger document."""

    schema_version: int = LEDGER_SCHEMA_VERSION
    session: SessionInfo
    totals: Totals = Field(default_factory=Totals)
    by_model: dict[str, ModelUsage] = Field(default_factory=dict)
    by_endpoint: dict[str, EndpointUsage] = Field(default_factory=dict)
    history: list[CallRecord] = Field(default_factory=list)
    assets: list[AssetRecord] = Field(default_factory=list)


class TrackResult(BaseModel):
    cost: float
    budget_remaining: float
    over_budget: bool


class BudgetCheck(BaseModel):
    allowed: bool
    remaining: float
    estimated_cost: float


class SessionSummary(SessionInfo):
    budget_remaining: float
    budget_percent: float


class UsageSummary(BaseModel):
    schema_version: int
    session: SessionSummary
    totals: Totals
    by_model: dict[str, ModelUsage]
    by_endpoint: dict[str, EndpointUsage]
    history: list[CallRecord]
    assets: list[AssetRecord]


class BudgetCheckRequest(BaseModel):
    estimated_cost: float = Field(default=0.01, ge=0)


class SetBudgetRequest(BaseModel):
    amount: float
