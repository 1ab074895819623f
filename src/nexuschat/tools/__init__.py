"""
Tool catalog for Nexus Chat.

This module provides a decorator to register static tool presets and a registry to look them up by
name.  A preset is a function returning the list of :class:`ToolSchema` objects offered to the model
when the user selects that tool set.  User-supplied JSON definitions are accepted through
:func:`parse_custom_tools`.
"""

import json
import logging
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
)

from nexuschat.core.errors import ToolSchemaError
from nexuschat.core.schema import ToolSchema

logger = logging.getLogger(__name__)

PresetFactory = Callable[[], List[ToolSchema]]

TOOL_PRESETS: Dict[str, PresetFactory] = {}
"""Global registry of tool presets."""

NO_TOOLS = "none"
DISCOVER = "discover"
CUSTOM = "custom"


def register_preset(name: str) -> Callable[[PresetFactory], PresetFactory]:
    """
    Register a tool preset under the given name.

    The decorated function takes no arguments and returns the schemas of the preset:
        @register_preset("my_tools")
        def my_tools():
            return [ToolSchema(name="...", description="...", parameters_schema={...})]

    Raises
    ------
    ValueError
        If a preset with the same name is already registered, or the name is reserved.
    """
    if name in TOOL_PRESETS:
        raise ValueError(f"Tool preset '{name}' is already registered.")
    if name in (NO_TOOLS, DISCOVER, CUSTOM):
        raise ValueError(f"Tool preset name '{name}' is reserved.")
    logger.debug("Registering tool preset '%s'", name)

    def wrapper(fn: PresetFactory) -> PresetFactory:
        TOOL_PRESETS[name] = fn
        return fn

    return wrapper


def get_preset(name: str) -> List[ToolSchema]:
    """Return the schemas of preset *name*."""
    factory = TOOL_PRESETS.get(name)
    if factory is None:
        raise ValueError(f"Tool preset '{name}' is not registered.")
    return factory()


def _schema_from_entry(entry: Any) -> ToolSchema:
    if not isinstance(entry, Mapping):
        raise ToolSchemaError("each tool definition must be a JSON object")
    # Accept both the chat-completions wrapper and the flat form
    body = entry.get("function", entry)
    if not isinstance(body, Mapping) or not body.get("name"):
        raise ToolSchemaError("tool definition is missing a name")
    parameters = body.get("parameters", body.get("parametersSchema"))
    schema = ToolSchema(name=body["name"], description=body.get("description") or "")
    if parameters is not None:
        schema.parameters_schema = parameters
    return schema


def parse_custom_tools(text: str) -> List[ToolSchema]:
    """
    Parse user-supplied tool definitions.

    *text* holds one definition or a list of them, either in chat-completions form
    (``{"type": "function", "function": {...}}``) or flat
    (``{"name", "description", "parameters"}``).

    Raises
    ------
    ToolSchemaError
        If the text is not well-formed JSON or a definition has no name.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ToolSchemaError(f"Tool definitions are not valid JSON: {exc}") from exc
    entries = value if isinstance(value, list) else [value]
    return [_schema_from_entry(entry) for entry in entries]


# ---------------------------------------------------------------------------
# Built-in presets
# ---------------------------------------------------------------------------
@register_preset("calculator")
def calculator_tools() -> List[ToolSchema]:
    """Arithmetic evaluation."""
    return [
        ToolSchema(
            name="calculate",
            description="Evaluate an arithmetic expression and return the numeric result.",
            parameters_schema={
                "type": "object",
                "properties": {
                    "expression": {
                        "type": "string",
                        "description": "Expression to evaluate, e.g. '2 + 2 * 3'",
                    }
                },
                "required": ["expression"],
            },
        )
    ]


@register_preset("weather")
def weather_tools() -> List[ToolSchema]:
    """Current weather lookup."""
    return [
        ToolSchema(
            name="get_weather",
            description="Get the current weather for a location.",
            parameters_schema={
                "type": "object",
                "properties": {
                    "location": {"type": "string", "description": "City and country"},
                    "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
                },
                "required": ["location"],
            },
        )
    ]


@register_preset("web_search")
def web_search_tools() -> List[ToolSchema]:
    """Web search."""
    return [
        ToolSchema(
            name="search_web",
            description="Search the web and return the top results.",
            parameters_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string"},
                    "max_results": {"type": "integer", "minimum": 1, "maximum": 10},
                },
                "required": ["query"],
            },
        )
    ]
