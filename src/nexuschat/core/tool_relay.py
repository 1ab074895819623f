"""Executes auto-resolvable tool calls through the tool-execution service and records results."""

import json
import logging
from typing import (
    Any,
    Dict,
    Iterable,
    Mapping,
    Protocol,
)

from nexuschat.core.errors import (
    ToolArgumentParseError,
    ToolExecutionError,
)
from nexuschat.core.ledger import ToolCallLedger
from nexuschat.core.schema import (
    Message,
    Role,
    ToolCallRecord,
)
from nexuschat.core.transcript import Transcript
from nexuschat.tools.tool_call_parser import parse_tool_arguments

logger = logging.getLogger(__name__)


class ToolInvoker(Protocol):
    """Anything that can run a named tool; :class:`ToolServiceClient` in production."""

    async def invoke(self, tool_name: str, arguments: Mapping[str, Any]) -> Any:
        ...


def salvage_arguments(record: ToolCallRecord) -> Dict[str, Any]:
    """Parse the record's arguments, falling back to ``{}`` when they are malformed."""
    try:
        return parse_tool_arguments(record.arguments_raw)
    except ToolArgumentParseError as exc:
        logger.warning(
            "Malformed arguments for tool '%s' (%s), continuing with no arguments: %s | raw=%r",
            record.name,
            record.id,
            exc,
            record.arguments_raw,
        )
        return {}


def serialize_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class ToolExecutionRelay:
    """
    Runs tool calls whose names the attached tool service handles.

    Parameters
    ----------
    invoker:
        The tool-execution service client.
    handled_names:
        Tool names the service can execute (usually the result of discovery).
    """

    def __init__(self, invoker: ToolInvoker, handled_names: Iterable[str]) -> None:
        self._invoker = invoker
        self.handled_names = frozenset(handled_names)

    async def execute(
        self, record: ToolCallRecord, transcript: Transcript, ledger: ToolCallLedger
    ) -> Message:
        """
        Execute *record* and append its tool message to *transcript*.

        Returns
        -------
        Message
            The tool message holding the serialized result.

        Raises
        ------
        ToolExecutionError
            If the invocation fails.  The record is marked failed and the placeholder tool
            message is removed before the error propagates.
        """
        ledger.start_auto(record.id)
        arguments = salvage_arguments(record)

        placeholder = transcript.append(Message(role=Role.TOOL, tool_call_id=record.id))
        try:
            logger.debug("Executing tool '%s' with args=%s", record.name, arguments)
            result = await self._invoker.invoke(record.name, arguments)
        except ToolExecutionError as exc:
            logger.error("Tool '%s' (%s) failed: %s", record.name, record.id, exc)
            self._roll_back(record, transcript, ledger, placeholder)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in tool '%s'", record.name)
            self._roll_back(record, transcript, ledger, placeholder)
            raise ToolExecutionError(f"Tool '{record.name}' raised an error: {exc}") from exc

        placeholder.content = serialize_result(result)
        ledger.resolve(record.id)
        logger.info("Tool '%s' returned: %s", record.name, placeholder.content)
        return placeholder

    @staticmethod
    def _roll_back(
        record: ToolCallRecord,
        transcript: Transcript,
        ledger: ToolCallLedger,
        placeholder: Message,
    ) -> None:
        ledger.fail(record.id)
        transcript.remove(placeholder)
