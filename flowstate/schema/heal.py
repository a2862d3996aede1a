"""
Heal pipeline request/response models.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, Field

from flowstate.core.config import settings
from flowstate.schema.defect import Defect, DefectReport
from flowstate.schema.element import ElementContext, ElementSnapshot


class HealStage(StrEnum):
    inspect = "inspect"
    surgery = "surgery"
    timeout = "timeout"


class HealOptions(BaseModel):
    auto_apply: bool = False
    verify: bool = True
    max_iterations: int = Field(default_factory=lambda: settings.HEAL_MAX_ITERATIONS, ge=1)
    timeout_seconds: Annotated[float, Field(gt=0)] | None = Field(default_factory=lambda: settings.HEAL_TIMEOUT_SECONDS)


class StageError(BaseModel):
    error: str


class SurgeryOutcome(BaseModel):
    success: bool = True
    code_length: int


class HealIterationResult(BaseModel):
    """Audit record of one pass through the heal loop."""

    iteration: int
    inspection: DefectReport | StageError | None = None
    surgery: SurgeryOutcome | StageError | None = None
    verified: bool = False


class HealResult(BaseModel):
    success: bool = False
    iterations: list[HealIterationResult] = Field(default_factory=list)
    final_code: str | None = None
    preview_path: str | None = None
    asset_prompt: str | None = None
    summary: str = ""
    error: str | None = None
    stage: HealStage | None = None


class HealRequest(BaseModel):
    screenshot: str = Field(min_length=1, description="Base64-encoded screenshot")
    code: str = Field(min_length=1)
    mime_type: str = "image/png"
    code_path: str | None = Field(default=None, description="Source path relative to FLOWSTATE_PROJECT_ROOT")
    options: HealOptions = Field(default_factory=HealOptions)
    snapshot: ElementSnapshot | None = None


class InspectRequest(BaseModel):
    screenshot: str | None = None
    context: ElementContext | None = None
    mime_type: str = "image/png"


class AnnotationInspectRequest(BaseModel):
    screenshot: str = Field(min_length=1)
    annotations: list[str] = Field(default_factory=list)
    voice_instructions: list[str] = Field(default_factory=list)
    mime_type: str = "image/png"


class AnalyzeRequest(BaseModel):
    snapshot: ElementSnapshot
    screenshot: str | None = None
    context: ElementContext | None = None
    mime_type: str = "image/png"


class ElementAnalysis(BaseModel):
    """Merged local + remote defects for one element."""

    defects: list[Defect] = Field(default_factory=list)
    local_count: int = 0
    remote_count: int = 0
    asset_prompt: str | None = None
    remote_error: str | None = None
    cached: bool = False
