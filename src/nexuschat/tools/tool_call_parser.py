"""
Parser for the argument text the assistant accumulates for a tool call.
It expects a JSON object such as
    {"expression": "2+2"}
and returns it as a dictionary.  An empty string means "no arguments".
"""

import json
from typing import (
    Any,
    Dict,
)

from nexuschat.core.errors import ToolArgumentParseError


def parse_tool_arguments(text: str) -> Dict[str, Any]:
    """
    Parse *text* into keyword arguments.

    Raises
    ------
    ToolArgumentParseError
        If the text is not valid JSON or does not hold a JSON object.
    """
    if not text or not text.strip():
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ToolArgumentParseError(f"arguments are not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise ToolArgumentParseError(
            f"arguments must be a JSON object, got {type(value).__name__}"
        )
    return value
