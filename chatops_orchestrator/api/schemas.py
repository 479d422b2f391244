"""
Pydantic schemas for the HTTP API.

``POST /v1/messages`` simulates one inbound chat message (optionally seeded
with channel history) and returns what the assistant posted back.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class AuthorModel(BaseModel):
    """Author of a chat message."""

    id: str = Field(default="user-1", description="Author id")
    name: str = Field(default="user", description="Author username")


class AttachmentModel(BaseModel):
    """File attached to a chat message."""

    name: str = Field(..., description="File name")
    url: str = Field(..., description="Download URL (http or https)")
    size: Optional[int] = Field(default=None, ge=0, description="Size in bytes")
    content_type: Optional[str] = Field(default=None, description="MIME type")


class HistoryMessage(BaseModel):
    """A message already present in the channel before the request."""

    author: AuthorModel = Field(default_factory=AuthorModel)
    bot: bool = Field(default=False, description="Whether the assistant wrote it")
    content: str = Field(default="", description="Message text")
    attachments: list[AttachmentModel] = Field(default_factory=list)


class MessageRequest(BaseModel):
    """Request body for /v1/messages."""

    content: str = Field(..., min_length=1, description="Text of the inbound message")
    channel_id: str = Field(default="general", min_length=1)
    channel_name: Optional[str] = Field(default=None)
    guild_id: Optional[str] = Field(default="guild-1")
    author: AuthorModel = Field(default_factory=AuthorModel)
    attachments: list[AttachmentModel] = Field(default_factory=list)
    history: list[HistoryMessage] = Field(
        default_factory=list,
        description="Channel history posted before the inbound message; when given it replaces the channel contents",
    )

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "content": "create a channel called announcements",
                "channel_id": "general",
                "author": {"id": "user-1", "name": "alice"},
            }
        }
    }


class ExecutionEntry(BaseModel):
    """One execution log entry of the run."""

    name: str
    args: Any = None
    status: Literal["pending", "success", "error", "skipped"]
    result: Any = None
    sequence: Optional[int] = None
    planned_order: int


class MessageResponse(BaseModel):
    """Response body for /v1/messages."""

    ignored: bool = Field(default=False, description="True when the message was not handled")
    reply: Optional[str] = Field(default=None, description="Text the assistant posted")
    run_id: Optional[str] = None
    channel_id: Optional[str] = Field(
        default=None, description="Channel the reply was delivered to"
    )
    new_channel_id: Optional[str] = None
    stop_reason: Optional[str] = None
    rounds: int = 0
    checklist: Optional[str] = Field(default=None, description="Rendered checklist text")
    execution_log: list[ExecutionEntry] = Field(default_factory=list)
    error: Optional[str] = None


class OperationInfo(BaseModel):
    """A registered operation."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    single_execution: bool = False


class OperationListResponse(BaseModel):
    object: Literal["list"] = "list"
    data: list[OperationInfo]


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""

    status: Literal["healthy", "unhealthy"] = "healthy"
    version: str = "0.1.0"
    model: str = Field(default="", description="Configured provider model")
    operations: int = Field(default=0, description="Number of registered operations")


class ErrorResponse(BaseModel):
    """Error response format."""

    detail: Any
