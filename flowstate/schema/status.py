"""
Service status models.
"""

from pydantic import BaseModel, Field
from ulid import ULID


class ModelNames(BaseModel):
    inspector: str
    surgeon: str
    artist: str
    stylist: str


class HealthCheckResponse(BaseModel):
    status: str = Field(default="ok", description="Service status")
    service: str = Field(default="flowstate", description="Service name")
    version: str = Field(..., description="Service version")
    uptime: float = Field(..., description="Seconds since startup")
    exec_id: ULID = Field(..., description="Identifier of this process")
    ai_configured: bool = Field(..., description="Whether a model API key is set")
    budget_remaining: float = Field(..., description="Remaining session budget in USD")
    models: ModelNames


class IndexResponse(BaseModel):
    message: str = Field(default="FlowState heal service", description="Welcome message")
    docs: str = Field(default="/docs", description="Interactive API documentation")
