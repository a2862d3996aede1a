"""
REST API router: usage ledger and budget endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from flowstate.api.deps import get_ledger, verify_token
from flowstate.core.usage import UsageLedger
from flowstate.schema.usage import BudgetCheck, BudgetCheckRequest, SetBudgetRequest, UsageSummary

__all__ = ("router",)

router = APIRouter(
    prefix="/v1/usage",
    tags=["usage"],
    dependencies=[Depends(verify_token)],
)


@router.get("")
async def get_usage(ledger: UsageLedger = Depends(get_ledger)) -> UsageSummary:  # noqa: B008
    """Full ledger snapshot with remaining budget and percentage used."""
    return ledger.summary()


@router.post("/check")
async def check_budget(
    body: BudgetCheckRequest,
    ledger: UsageLedger = Depends(get_ledger),  # noqa: B008
) -> BudgetCheck:
    return ledger.check_budget(body.estimated_cost)


@router.post("/budget")
async def set_budget(
    body: SetBudgetRequest,
    ledger: UsageLedger = Depends(get_ledger),  # noqa: B008
) -> dict[str, bool | float]:
    try:
        ledger.set_budget(body.amount)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"success": True, "new_budget": body.amount}


@router.post("/reset")
async def reset_usage(ledger: UsageLedger = Depends(get_ledger)) -> dict[str, bool | str]:  # noqa: B008
    """Clear counters, history and assets. Cannot be undone."""
    ledger.reset()
    return {"success": True, "message": "Usage session reset"}
