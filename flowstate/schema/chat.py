"""
Design chat models.
"""

from pydantic import BaseModel, Field

from flowstate.schema.usage import UsageSummary


class ChatMessage(BaseModel):
    role: str = Field(..., description='"user" for the user, anything else is a model turn')
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    context: str | None = Field(default=None, description="Topic the user is currently exploring")
    history: list[ChatMessage] = Field(default_factory=list)


class ChatReply(BaseModel):
    success: bool
    response: str | None = None
    error: str | None = None
    usage: UsageSummary | None = None
