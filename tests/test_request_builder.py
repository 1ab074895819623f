"""
Tests for the transcript invariant and the request builder.

Run with:
$ pytest -q
"""

import pytest

from nexuschat.core.errors import InvalidTranscriptError
from nexuschat.core.request_builder import (
    TOOL_CONVENTIONS_PROMPT,
    build_request,
    build_request_config,
)
from nexuschat.core.schema import (
    Message,
    RequestConfig,
    Role,
    ToolCallRecord,
)
from nexuschat.core.transcript import (
    WELCOME_MESSAGE,
    Transcript,
)
from nexuschat.tools import get_preset

from fakes import make_settings


def _tool_round_transcript() -> Transcript:
    transcript = Transcript()
    transcript.append(Message(role=Role.USER, content="What's 2+2?"))
    transcript.append(
        Message(
            role=Role.ASSISTANT,
            tool_calls=[
                ToolCallRecord(id="c1", name="calculate", arguments_raw='{"expression":"2+2"}')
            ],
        )
    )
    transcript.append(Message(role=Role.TOOL, tool_call_id="c1", content="4"))
    return transcript


def test_transcript_starts_with_welcome_message() -> None:
    transcript = Transcript()
    assert len(transcript) == 1
    assert transcript[0].role is Role.ASSISTANT
    assert transcript[0].content == WELCOME_MESSAGE
    assert transcript[0].display_only


def test_reset_clears_and_reseeds() -> None:
    transcript = _tool_round_transcript()
    transcript.reset()
    assert [msg.content for msg in transcript] == [WELCOME_MESSAGE]


def test_payload_carries_wire_messages() -> None:
    config = RequestConfig(model="nexus-small", streaming=True)
    payload = build_request(_tool_round_transcript(), config)

    assert payload["model"] == "nexus-small"
    assert payload["stream"] is True
    assert payload["messages"][0] == {"role": "user", "content": "What's 2+2?"}
    assert payload["messages"][1]["tool_calls"] == [
        {
            "id": "c1",
            "type": "function",
            "function": {"name": "calculate", "arguments": '{"expression":"2+2"}'},
        }
    ]
    assert payload["messages"][2] == {"role": "tool", "content": "4", "tool_call_id": "c1"}


def test_welcome_message_is_not_sent() -> None:
    transcript = Transcript()
    assert build_request(transcript, RequestConfig(model="m"))["messages"] == []

    transcript.append(Message(role=Role.USER, content="hello"))
    messages = build_request(transcript, RequestConfig(model="m"))["messages"]
    assert messages[0]["role"] == "user"
    assert all(msg["content"] != WELCOME_MESSAGE for msg in messages)


def test_unknown_tool_call_id_is_rejected_and_transcript_unchanged() -> None:
    transcript = Transcript()
    transcript.append(Message(role=Role.USER, content="hi"))
    transcript.append(Message(role=Role.TOOL, tool_call_id="ghost", content="boo"))
    before = transcript.messages

    with pytest.raises(InvalidTranscriptError, match="ghost"):
        build_request(transcript, RequestConfig(model="m"))

    assert transcript.messages == before


def test_tool_message_before_its_call_is_rejected() -> None:
    transcript = Transcript()
    transcript.append(Message(role=Role.TOOL, tool_call_id="c1", content="early"))
    transcript.append(
        Message(role=Role.ASSISTANT, tool_calls=[ToolCallRecord(id="c1", name="calculate")])
    )
    with pytest.raises(InvalidTranscriptError):
        build_request(transcript, RequestConfig(model="m"))


def test_no_tools_means_no_tool_fields() -> None:
    payload = build_request(Transcript(), RequestConfig(model="m", tools_offered=[]))
    assert "tools" not in payload
    assert "tool_choice" not in payload


def test_offered_tools_set_auto_choice() -> None:
    config = RequestConfig(model="m", tools_offered=get_preset("calculator"))
    payload = build_request(Transcript(), config)

    assert payload["tool_choice"] == "auto"
    assert payload["tools"][0]["type"] == "function"
    assert payload["tools"][0]["function"]["name"] == "calculate"
    assert payload["tools"][0]["function"]["parameters"]["required"] == ["expression"]


def test_streaming_and_buffered_limits_differ() -> None:
    settings = make_settings()
    streamed = build_request_config(settings, "m", streaming=True, tools_offered=[])
    buffered = build_request_config(settings, "m", streaming=False, tools_offered=[])

    streamed_payload = build_request(Transcript(), streamed)
    buffered_payload = build_request(Transcript(), buffered)

    assert "temperature" not in streamed_payload
    assert streamed_payload["max_tokens"] == settings.STREAM_MAX_TOKENS
    assert buffered_payload["temperature"] == settings.BUFFERED_TEMPERATURE
    assert buffered_payload["max_tokens"] == settings.BUFFERED_MAX_TOKENS
    assert streamed_payload["max_tokens"] > buffered_payload["max_tokens"]


def test_discovery_prompt_prepended_once() -> None:
    transcript = Transcript()
    config = RequestConfig(model="m")

    first = build_request(transcript, config, tool_discovery=True)
    second = build_request(transcript, config, tool_discovery=True)

    for payload in (first, second):
        system = [msg for msg in payload["messages"] if msg["role"] == "system"]
        assert system == [{"role": "system", "content": TOOL_CONVENTIONS_PROMPT}]
        assert payload["messages"][0]["role"] == "system"
    # The transcript itself is untouched
    assert not transcript.has_system_message()


def test_existing_system_message_suppresses_discovery_prompt() -> None:
    transcript = Transcript()
    transcript.append(Message(role=Role.SYSTEM, content="Be brief."))
    payload = build_request(transcript, RequestConfig(model="m"), tool_discovery=True)

    contents = [msg["content"] for msg in payload["messages"] if msg["role"] == "system"]
    assert contents == ["Be brief."]
