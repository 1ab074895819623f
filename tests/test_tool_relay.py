"""
Tests for the tool execution relay and the argument parser it relies on.

Run with:
$ pytest -q
"""

import asyncio
import logging

import pytest

from nexuschat.core.errors import (
    ToolArgumentParseError,
    ToolExecutionError,
)
from nexuschat.core.ledger import ToolCallLedger
from nexuschat.core.schema import (
    Message,
    Role,
    ToolCallRecord,
    ToolCallStatus,
)
from nexuschat.core.tool_relay import ToolExecutionRelay
from nexuschat.core.transcript import Transcript
from nexuschat.tools.tool_call_parser import parse_tool_arguments

from fakes import FakeToolService


def _setup(arguments: str, result):
    service = FakeToolService({"calculate": result})
    relay = ToolExecutionRelay(service, service.results.keys())
    record = ToolCallRecord(id="c1", name="calculate", arguments_raw=arguments)
    transcript = Transcript()
    transcript.append(Message(role=Role.ASSISTANT, tool_calls=[record]))
    ledger = ToolCallLedger()
    ledger.open_round([record], relay.handled_names)
    return service, relay, record, transcript, ledger


def test_parse_tool_arguments() -> None:
    assert parse_tool_arguments('{"expression": "2+2"}') == {"expression": "2+2"}
    assert parse_tool_arguments("") == {}
    with pytest.raises(ToolArgumentParseError):
        parse_tool_arguments("{bad json")
    with pytest.raises(ToolArgumentParseError, match="JSON object"):
        parse_tool_arguments("[1, 2]")


def test_success_appends_serialized_result() -> None:
    service, relay, record, transcript, ledger = _setup('{"expression":"2+2"}', {"value": 4})

    message = asyncio.run(relay.execute(record, transcript, ledger))

    assert service.calls == [("calculate", {"expression": "2+2"})]
    assert message is transcript[-1]
    assert message.role is Role.TOOL
    assert message.tool_call_id == "c1"
    assert message.content == '{"value": 4}'
    assert record.status is ToolCallStatus.RESOLVED


def test_string_results_are_kept_verbatim() -> None:
    _, relay, record, transcript, ledger = _setup("{}", "4")
    message = asyncio.run(relay.execute(record, transcript, ledger))
    assert message.content == "4"


def test_malformed_arguments_fall_back_to_empty(caplog) -> None:
    service, relay, record, transcript, ledger = _setup("{bad json", "ok")

    with caplog.at_level(logging.WARNING):
        asyncio.run(relay.execute(record, transcript, ledger))

    assert service.calls == [("calculate", {})]
    assert record.status is ToolCallStatus.RESOLVED
    assert transcript[-1].content == "ok"
    assert "Malformed arguments" in caplog.text


def test_failure_removes_placeholder_and_marks_failed() -> None:
    _, relay, record, transcript, ledger = _setup(
        "{bad json", ToolExecutionError("division by zero")
    )
    before = len(transcript)

    with pytest.raises(ToolExecutionError, match="division by zero"):
        asyncio.run(relay.execute(record, transcript, ledger))

    assert len(transcript) == before
    assert all(msg.role is not Role.TOOL for msg in transcript)
    assert record.status is ToolCallStatus.FAILED


def test_unexpected_exception_is_wrapped() -> None:
    _, relay, record, transcript, ledger = _setup("{}", KeyError("missing"))

    with pytest.raises(ToolExecutionError, match="raised an error"):
        asyncio.run(relay.execute(record, transcript, ledger))
    assert record.status is ToolCallStatus.FAILED
