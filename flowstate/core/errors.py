"""Domain exceptions."""

__all__ = (
    "BudgetExceededError",
    "FlowStateError",
    "LedgerStorageError",
)


class FlowStateError(Exception):
    """Base class for FlowState errors."""


class BudgetExceededError(FlowStateError):
    """Raised when the remaining budget cannot cover an estimated call cost."""

    def __init__(self, remaining: float, estimated_cost: float):
        self.remaining = remaining
        self.estimated_cost = estimated_cost
        super().__init__(f"Budget exceeded. Remaining: ${remaining:.4f}, needed: ${estimated_cost:.4f}")


class LedgerStorageError(FlowStateError):
    """The usage ledger could not be persisted."""
