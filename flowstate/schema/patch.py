"""
Patch (code surgery) models.
"""

from pydantic import BaseModel, Field, model_validator

from flowstate.schema.defect import Defect


class PatchResult(BaseModel):
    """Result of one patch call. ``success`` is true iff ``code`` is set."""

    success: bool
    code: str | None = None
    error: str | None = None
    preview_path: str | None = None

    @model_validator(mode="after")
    def _code_matches_success(self):
        if self.success != (self.code is not None):
            raise ValueError("success must be true exactly when code is present")
        return self


class FixRequest(BaseModel):
    code: str
    defects: list[Defect | str] = Field(description="Defects to fix, as rich objects or plain strings")


class DiffRequest(BaseModel):
    original: str
    fixed: str


class DiffLine(BaseModel):
    line: int
    type: str
    original: str
    fixed: str


class DiffResponse(BaseModel):
    total_changes: int
    diff: list[DiffLine] = Field(default_factory=list)
