"""
Structured log line.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_serializer


class LogEntry(BaseModel):
    asctime: datetime = Field(..., description="Timestamp of the log entry")
    levelname: str = Field(..., description="Log level name")
    logger: str = Field(default="", description="Module that emitted the record")
    correlation_id: str | None = Field(default=None, description="Request id from the X-Request-ID header")
    message: str = Field(..., description="Log message content")
    context: dict[str, str] = Field(default_factory=dict, description="Values bound to the logger")

    @field_serializer("asctime")
    def serialize_asctime(self, asctime: datetime) -> str:
        return asctime.strftime(r"%Y-%m-%d %H:%M:%S,%f")[:-3]
