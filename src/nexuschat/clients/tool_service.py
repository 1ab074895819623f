"""
Client for the external tool-execution service.

The service speaks a small RPC keyed by method name.  Every call is one HTTP POST carrying
``{"id": <n>, "method": <name>, "params": {...}}``.  The reply is either a single JSON object or an
event stream (``text/event-stream``) of JSON chunks, in which case only the first well-formed chunk
is significant.  A reply holds ``{"result": ...}`` or ``{"error": {"message": ...}}``.
"""

import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    cast,
)

import httpx
from pydantic import ValidationError

from nexuschat.core.errors import (
    ToolExecutionError,
    ToolServiceError,
)
from nexuschat.core.schema import ToolSchema

logger = logging.getLogger(__name__)

_ACCEPT = "application/json, text/event-stream"


def _first_event_payload(body: str) -> Dict[str, Any]:
    """Return the first ``data:`` line of an event stream that decodes to a JSON object."""
    for line in body.splitlines():
        if not line.startswith("data:"):
            continue
        chunk = line[len("data:") :].strip()
        try:
            value = json.loads(chunk)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed event chunk: %r", chunk)
            continue
        if isinstance(value, dict):
            return value
    raise ToolServiceError("Event stream held no well-formed JSON chunk")


def decode_reply(response: httpx.Response) -> Dict[str, Any]:
    """Decode a tool-service reply regardless of its framing."""
    content_type = response.headers.get("content-type", "")
    if content_type.startswith("text/event-stream"):
        return _first_event_payload(response.text)
    try:
        value = response.json()
    except json.JSONDecodeError as exc:
        raise ToolServiceError(f"Tool service replied with invalid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise ToolServiceError("Tool service reply is not a JSON object")
    return cast(Dict[str, Any], value)


class ToolServiceClient:
    """Async client for ``discover`` and ``invoke``."""

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(
            headers={"Accept": _ACCEPT, **(headers or {})},
            timeout=timeout,
            transport=transport,
        )
        self._next_id = 0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: Mapping[str, Any]) -> Any:
        self._next_id += 1
        request = {"id": self._next_id, "method": method, "params": dict(params)}
        logger.debug("Tool service call %s #%d", method, self._next_id)

        try:
            response = await self._client.post(self._url, json=request)
        except httpx.HTTPError as exc:
            raise ToolServiceError(f"Tool service '{method}' request failed: {exc}") from exc

        if response.is_error:
            detail = response.reason_phrase
            try:
                error = decode_reply(response).get("error") or {}
                detail = error.get("message") or detail
            except ToolServiceError:
                pass
            raise ToolServiceError(
                f"Tool service '{method}' answered {response.status_code}: {detail}"
            )

        reply = decode_reply(response)
        if reply.get("error") is not None:
            error = reply["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ToolExecutionError(message or f"Tool service '{method}' reported an error")
        if "result" not in reply:
            raise ToolServiceError(f"Tool service '{method}' reply has neither result nor error")
        return reply["result"]

    async def discover(self) -> List[ToolSchema]:
        """List the tools the service can execute."""
        result = await self._call("discover", {})
        if isinstance(result, dict):
            result = result.get("tools", [])
        try:
            tools = [ToolSchema.model_validate(item) for item in result]
        except (TypeError, ValidationError) as exc:
            raise ToolServiceError(f"Malformed discovery result: {exc}") from exc
        logger.info("Discovered %d tools: %s", len(tools), [tool.name for tool in tools])
        return tools

    async def invoke(self, tool_name: str, arguments: Mapping[str, Any]) -> Any:
        """Execute *tool_name* and return its opaque result."""
        return await self._call("invoke", {"toolName": tool_name, "arguments": dict(arguments)})
