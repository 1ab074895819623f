"""
Stream assembler.

Folds the fragments of a streamed chat completion into one finalized assistant message.  Text
deltas are concatenated in arrival order; tool-call deltas are merged by their ``index``.  No
fragment is assumed to be complete: ids, names and argument strings may all be split across
several deltas.  Argument text is never parsed here.
"""

import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Mapping,
    Optional,
)

from nexuschat.core.errors import TransportError
from nexuschat.core.renderer import (
    NullRenderer,
    Renderer,
)
from nexuschat.core.schema import (
    Message,
    Role,
    ToolCallRecord,
)

logger = logging.getLogger(__name__)

INTERRUPTION_NOTE = "[Response interrupted: {reason}]"


def _first_choice(payload: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    choices = payload.get("choices") or []
    return choices[0] if choices else None


class StreamAssembler:
    """Accumulator for one streamed assistant message."""

    def __init__(self) -> None:
        self._text: List[str] = []
        self._calls: Dict[int, ToolCallRecord] = {}
        self.fragments_seen = 0
        self.interruption: Optional[TransportError] = None

    # ------------------------------------------------------------------ #
    # Folding
    # ------------------------------------------------------------------ #
    @property
    def text(self) -> str:
        return "".join(self._text)

    @property
    def tool_calls(self) -> List[ToolCallRecord]:
        """In-progress records ordered by their stream index."""
        return [self._calls[idx] for idx in sorted(self._calls)]

    def apply(self, fragment: Mapping[str, Any]) -> None:
        """Fold a single fragment into the accumulator."""
        self.fragments_seen += 1
        choice = _first_choice(fragment)
        if choice is None:
            return  # usage-only or keep-alive chunk
        delta = choice.get("delta") or {}

        content = delta.get("content")
        if content:
            self._text.append(content)

        for call_delta in delta.get("tool_calls") or []:
            self._apply_tool_delta(call_delta)

    def _apply_tool_delta(self, call_delta: Mapping[str, Any]) -> None:
        index = call_delta.get("index", 0)
        record = self._calls.get(index)
        if record is None:
            record = self._calls[index] = ToolCallRecord()
            logger.debug("Tool call #%d started", index)

        if call_delta.get("id"):
            record.id = call_delta["id"]
        function = call_delta.get("function") or {}
        if function.get("name"):
            record.name = function["name"]
        if function.get("arguments"):
            record.arguments_raw += function["arguments"]

    # ------------------------------------------------------------------ #
    # Driving
    # ------------------------------------------------------------------ #
    async def consume(
        self,
        fragments: AsyncIterator[Mapping[str, Any]],
        renderer: Renderer | None = None,
    ) -> Message:
        """
        Drain *fragments* and return the finalized message.

        The renderer sees the growing plain text after every fragment.  A :class:`TransportError`
        raised by the fragment source does not discard what was already received: it is stored
        in :attr:`interruption` and the message is finalized with an annotation.
        """
        renderer = renderer or NullRenderer()
        try:
            async for fragment in fragments:
                self.apply(fragment)
                renderer.on_partial_text(self.text)
        except TransportError as exc:
            logger.warning(
                "Stream interrupted after %d fragments: %s", self.fragments_seen, exc
            )
            self.interruption = exc
        return self.finalize()

    def finalize(self) -> Message:
        """Build the message from whatever has been accumulated."""
        text = self.text
        calls = self.tool_calls

        if self.interruption is not None:
            note = INTERRUPTION_NOTE.format(reason=self.interruption)
            text = f"{text}\n\n{note}" if text else note
            if calls:
                # Half-received calls cannot be executed or answered
                logger.warning(
                    "Dropping %d incomplete tool call(s) from interrupted stream: %s",
                    len(calls),
                    [call.name for call in calls],
                )
                calls = []

        return Message(role=Role.ASSISTANT, content=text or None, tool_calls=calls)


def message_from_completion(response: Mapping[str, Any]) -> Message:
    """
    Convert a non-streamed completion response into a finalized message.

    Raises
    ------
    TransportError
        If the response carries no choices.
    """
    choice = _first_choice(response)
    if choice is None:
        raise TransportError("Completion response contained no choices")
    raw = choice.get("message") or {}

    calls = []
    for call in raw.get("tool_calls") or []:
        function = call.get("function") or {}
        calls.append(
            ToolCallRecord(
                id=call.get("id") or "",
                name=function.get("name") or "",
                arguments_raw=function.get("arguments") or "",
            )
        )
    return Message(role=Role.ASSISTANT, content=raw.get("content"), tool_calls=calls)
