"""
Schema definitions for transcript messages, tool calls and completion requests.

These data models serve as the contract between the orchestrator, the completion service and the
tool-execution service.  We keep them separate from runtime logic so they can be imported anywhere
without side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Role(str, Enum):
    """Author of a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class ToolCallStatus(str, Enum):
    """Lifecycle of a tool call requested by the assistant."""

    PROPOSED = "proposed"
    AUTO_RESOLVING = "auto_resolving"
    AWAITING_MANUAL_RESPONSE = "awaiting_manual_response"
    RESOLVED = "resolved"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        """True once no further resolution is accepted."""
        return self in (ToolCallStatus.RESOLVED, ToolCallStatus.FAILED)


class ToolCallRecord(BaseModel):
    """A tool call emitted by the assistant, possibly still being assembled."""

    id: str = ""
    name: str = ""
    arguments_raw: str = Field("", description="Accumulated argument text, not necessarily JSON")
    status: ToolCallStatus = ToolCallStatus.PROPOSED

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_raw},
        }


class Message(BaseModel):
    """One entry of the transcript."""

    role: Role
    content: Optional[str] = None
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    # Shown to the user but never sent to the completion service
    display_only: bool = False

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the chat-completions message shape."""
        wire: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            wire["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.role is Role.TOOL:
            wire["tool_call_id"] = self.tool_call_id
        return wire


class ToolSchema(BaseModel):
    """
    A tool definition offered to the model.

    ``parameters_schema`` is an opaque JSON value; it is forwarded verbatim and never interpreted.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    parameters_schema: Any = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="parametersSchema",
    )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }


class RequestConfig(BaseModel):
    """Per-request configuration, built fresh for every round."""

    model_config = ConfigDict(frozen=True)

    model: str
    streaming: bool = True
    tools_offered: List[ToolSchema] = Field(default_factory=list)
    max_output_tokens: int = 4096
    temperature: Optional[float] = None  # only sent on non-streaming requests
