"""Ordered conversation log owned by one chat session."""

import logging
from typing import (
    Iterator,
    List,
    Optional,
)

from nexuschat.core.errors import InvalidTranscriptError
from nexuschat.core.schema import (
    Message,
    Role,
)

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Hello! I'm connected to Nexus LLM. How can I help you today?"


class Transcript:
    """
    Append-only list of :class:`Message` objects.

    The only ways to shrink it are :meth:`remove` (used to drop a tool placeholder),
    :meth:`truncate` (used to abandon a tool round) and :meth:`reset`.
    """

    def __init__(self, welcome: Optional[str] = WELCOME_MESSAGE) -> None:
        self._messages: List[Message] = []
        self._welcome = welcome
        self.reset()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    @property
    def messages(self) -> List[Message]:
        """Snapshot of the current messages."""
        return list(self._messages)

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def remove(self, message: Message) -> None:
        """Remove *message* (matched by identity)."""
        for idx, existing in enumerate(self._messages):
            if existing is message:
                del self._messages[idx]
                return
        raise ValueError("message is not part of this transcript")

    def truncate(self, length: int) -> None:
        """Drop every message after the first *length* ones."""
        if length < len(self._messages):
            logger.debug("Truncating transcript from %d to %d messages", len(self), length)
            del self._messages[length:]

    def reset(self) -> None:
        """Clear the log and re-seed it with the (display-only) welcome message."""
        seeded: List[Message] = []
        if self._welcome:
            seeded.append(Message(role=Role.ASSISTANT, content=self._welcome, display_only=True))
        self._messages = seeded

    def has_system_message(self) -> bool:
        return any(msg.role is Role.SYSTEM for msg in self._messages)

    def validate(self) -> None:
        """
        Check that every tool message answers a tool call emitted earlier by the assistant.

        Raises
        ------
        InvalidTranscriptError
            On the first tool message whose ``tool_call_id`` is unknown at its position.
        """
        emitted: set[str] = set()
        for position, msg in enumerate(self._messages):
            if msg.role is Role.ASSISTANT:
                emitted.update(call.id for call in msg.tool_calls)
            elif msg.role is Role.TOOL:
                if not msg.tool_call_id or msg.tool_call_id not in emitted:
                    raise InvalidTranscriptError(
                        f"Tool message at position {position} references unknown tool call "
                        f"'{msg.tool_call_id}'"
                    )
