"""
Request builder.

Turns a transcript snapshot plus a :class:`RequestConfig` into the payload sent to the
chat-completions endpoint.  This is a pure function: the transcript is never modified.
"""

import logging
from typing import (
    Any,
    Dict,
    List,
)

from nexuschat.config import Settings
from nexuschat.core.schema import (
    RequestConfig,
    Role,
    ToolSchema,
)
from nexuschat.core.transcript import Transcript

logger = logging.getLogger(__name__)

TOOL_CONVENTIONS_PROMPT = """\
You are a helpful assistant connected to Nexus LLM.
You can call the tools listed in this request when they help answer the user.
Call a tool by emitting a function call with JSON arguments that match its parameter schema.
Wait for the tool result before relying on it, and answer in plain text once no further tool \
is needed.
"""


def build_request_config(
    settings: Settings,
    model: str,
    streaming: bool,
    tools_offered: List[ToolSchema],
) -> RequestConfig:
    """
    Build the per-round config.

    Streaming requests get the larger token ceiling and no temperature override; buffered requests
    get an explicit temperature and a lower ceiling.
    """
    if streaming:
        return RequestConfig(
            model=model,
            streaming=True,
            tools_offered=tools_offered,
            max_output_tokens=settings.STREAM_MAX_TOKENS,
        )
    return RequestConfig(
        model=model,
        streaming=False,
        tools_offered=tools_offered,
        max_output_tokens=settings.BUFFERED_MAX_TOKENS,
        temperature=settings.BUFFERED_TEMPERATURE,
    )


def build_request(
    transcript: Transcript,
    config: RequestConfig,
    tool_discovery: bool = False,
) -> Dict[str, Any]:
    """
    Produce the completion request payload.

    Parameters
    ----------
    transcript:
        Conversation so far.  Validated, never mutated.  Display-only entries are left out.
    config:
        Model, streaming flag, offered tools and sampling limits.
    tool_discovery:
        When *True* and the transcript carries no system message, a synthetic system message
        describing the tool conventions is placed in front of the conversation.

    Raises
    ------
    InvalidTranscriptError
        If a tool message references a tool call no preceding assistant message emitted.
    """
    transcript.validate()

    messages = [msg.to_wire() for msg in transcript if not msg.display_only]
    if tool_discovery and not transcript.has_system_message():
        messages.insert(0, {"role": Role.SYSTEM.value, "content": TOOL_CONVENTIONS_PROMPT})

    payload: Dict[str, Any] = {
        "model": config.model,
        "messages": messages,
        "stream": config.streaming,
        "max_tokens": config.max_output_tokens,
    }
    # An empty tools list means something different to the service than no tools at all
    if config.tools_offered:
        payload["tools"] = [tool.to_wire() for tool in config.tools_offered]
        payload["tool_choice"] = "auto"
    if not config.streaming and config.temperature is not None:
        payload["temperature"] = config.temperature

    logger.debug(
        "Built request: model=%s stream=%s messages=%d tools=%d",
        config.model,
        config.streaming,
        len(messages),
        len(config.tools_offered),
    )
    return payload
