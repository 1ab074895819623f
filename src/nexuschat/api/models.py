"""
Pydantic models for Nexus Chat API requests and responses.
This module defines the request and response schemas used by the Nexus Chat API.
"""

from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from nexuschat.core.schema import (
    Message,
    ToolCallRecord,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionRequest(BaseModel):
    """Request to create a new session."""

    model: Optional[str] = Field(None, description="Model id; defaults to the configured/first one")
    tool_set: Optional[str] = Field(None, description="none, discover, custom or a preset name")


class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., description="User message for the assistant")


class ToolResultRequest(BaseModel):
    """Manual response to a pending tool call."""

    tool_call_id: str
    content: str


class SessionResponse(BaseModel):
    """Snapshot of a session after the last operation settled."""

    session_id: str
    model: Optional[str]
    state: str
    status: str
    transcript: List[Message]
    pending_tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ModelsResponse(BaseModel):
    """Models offered by the gateway."""

    models: List[str]
