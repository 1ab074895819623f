"""Notification interface between the orchestration core and whatever displays the chat."""

from typing import (
    List,
    Protocol,
)

from nexuschat.core.schema import Message


class Renderer(Protocol):
    """Receives display notifications; implementations must not mutate the transcript."""

    def on_status(self, status: str) -> None:
        """Short status line such as ``"Thinking..."`` or ``"Ready"``."""

    def on_partial_text(self, text: str) -> None:
        """Whole accumulated text of the message being streamed (plain, not formatted)."""

    def on_final_message(self, message: Message) -> None:
        """A finalized assistant message, safe for rich rendering."""

    def on_error(self, text: str) -> None:
        """A visible error entry."""


class NullRenderer:
    """Renderer that discards everything."""

    def on_status(self, status: str) -> None:
        pass

    def on_partial_text(self, text: str) -> None:
        pass

    def on_final_message(self, message: Message) -> None:
        pass

    def on_error(self, text: str) -> None:
        pass


class RecordingRenderer:
    """Renderer that keeps every notification; used by the HTTP API to report back to callers."""

    def __init__(self) -> None:
        self.status = "Ready"
        self.partials: List[str] = []
        self.finals: List[Message] = []
        self.errors: List[str] = []

    def on_status(self, status: str) -> None:
        self.status = status

    def on_partial_text(self, text: str) -> None:
        self.partials.append(text)

    def on_final_message(self, message: Message) -> None:
        self.finals.append(message)

    def on_error(self, text: str) -> None:
        self.errors.append(text)
