from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMetadata(WireModel):
    response_time: int = Field(..., ge=0)
    timestamp: str
    model: str
    usage: dict[str, Any] = Field(default_factory=dict)


class ChatResponse(WireModel):
    content: str
    metadata: ChatMetadata


class ErrorResponse(WireModel):
    error: str
    message: str
    code: str | None = None
    timestamp: str | None = None


class NotFoundResponse(ErrorResponse):
    available_endpoints: list[str]


class HealthResponse(WireModel):
    status: str
    timestamp: str
    uptime: float
    memory: dict[str, int]


class ConversationsResponse(WireModel):
    message: str
    status: str
