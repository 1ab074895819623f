"""Wires settings, clients and the tool catalog into ready-to-use chat sessions."""

import logging
from typing import (
    List,
    Optional,
    Tuple,
)

from nexuschat.clients.completion import CompletionClient
from nexuschat.clients.tool_service import ToolServiceClient
from nexuschat.config import Settings
from nexuschat.core.errors import ToolExecutionError
from nexuschat.core.orchestrator import Orchestrator
from nexuschat.core.renderer import Renderer
from nexuschat.core.schema import ToolSchema
from nexuschat.core.session import ChatSession
from nexuschat.core.tool_relay import ToolExecutionRelay
from nexuschat.tools import (
    CUSTOM,
    DISCOVER,
    NO_TOOLS,
    get_preset,
    parse_custom_tools,
)

logger = logging.getLogger(__name__)


def build_completion_client(settings: Settings) -> CompletionClient:
    return CompletionClient(
        endpoint=settings.ENDPOINT,
        api_key=settings.API_KEY,
        timeout=settings.REQUEST_TIMEOUT,
        headers=settings.SESSION_HEADERS,
    )


def build_tool_service(settings: Settings) -> Optional[ToolServiceClient]:
    if not settings.TOOL_SERVICE_URL:
        return None
    return ToolServiceClient(
        settings.TOOL_SERVICE_URL,
        headers=settings.SESSION_HEADERS,
        timeout=settings.REQUEST_TIMEOUT,
    )


async def discover_tools(tool_service: Optional[ToolServiceClient]) -> List[ToolSchema]:
    """Ask the tool service what it can execute; an unreachable service offers nothing."""
    if tool_service is None:
        return []
    try:
        return await tool_service.discover()
    except ToolExecutionError as exc:
        logger.error("Tool discovery failed: %s", exc)
        return []


def resolve_tool_set(
    tool_set: str, custom_text: Optional[str], discovered: List[ToolSchema]
) -> Tuple[List[ToolSchema], bool]:
    """
    Return the tools to offer for *tool_set* and whether discovery mode is active.

    Raises
    ------
    ToolSchemaError
        If *tool_set* is ``custom`` and the definitions are not valid JSON.
    ValueError
        If *tool_set* names an unknown preset.
    """
    name = tool_set.lower()
    if name == NO_TOOLS:
        return [], False
    if name == DISCOVER:
        return list(discovered), True
    if name == CUSTOM:
        return parse_custom_tools(custom_text or "[]"), False
    return get_preset(name), False


async def create_orchestrator(
    settings: Settings,
    completion: CompletionClient,
    tool_service: Optional[ToolServiceClient],
    model: Optional[str],
    renderer: Optional[Renderer] = None,
    tool_set: Optional[str] = None,
) -> Orchestrator:
    """Build a fresh session and its orchestrator."""
    discovered = await discover_tools(tool_service)
    tools, discovery = resolve_tool_set(
        tool_set or settings.TOOL_SET, settings.CUSTOM_TOOLS, discovered
    )

    relay = None
    if tool_service is not None and discovered:
        relay = ToolExecutionRelay(tool_service, [tool.name for tool in discovered])

    session = ChatSession(
        model=model,
        streaming=settings.STREAMING,
        tools_offered=tools,
        tool_discovery=discovery,
        headers=dict(settings.SESSION_HEADERS),
    )
    logger.info(
        "Session %s: model=%s streaming=%s tools=%s",
        session.session_id,
        model,
        session.streaming,
        [tool.name for tool in tools],
    )
    return Orchestrator(session, completion, relay=relay, renderer=renderer, settings=settings)
