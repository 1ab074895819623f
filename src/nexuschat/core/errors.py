"""
Error taxonomy for the orchestration core.

Every error is recoverable at session level: the orchestrator catches them at the turn boundary,
reports them through the renderer and returns to idle.
"""


class ChatError(RuntimeError):
    """Base class for all chat orchestration errors."""


class InvalidTranscriptError(ChatError):
    """A tool message references a tool call no preceding assistant message emitted."""


class TransportError(ChatError):
    """The completion service could not be reached or the stream broke off."""


class ToolArgumentParseError(ChatError):
    """Accumulated tool arguments are not a JSON object."""


class ToolExecutionError(ChatError):
    """The tool-execution service rejected or failed a tool invocation."""


class ToolServiceError(ToolExecutionError):
    """The tool-execution service answered with something that is not a valid reply."""


class UnknownToolCallError(ChatError):
    """A resolution was submitted for a tool call id the ledger does not track."""


class AlreadyResolvedError(ChatError):
    """A resolution was submitted for a tool call that is already terminal."""


class TurnInProgressError(ChatError):
    """A new turn was requested while another one is still in flight."""


class EmptyMessageError(ChatError):
    """The user submitted an empty message."""


class NoModelSelectedError(ChatError):
    """No model is available to send the request to."""


class ToolRoundLimitError(ChatError):
    """The assistant kept requesting tools past the configured round limit."""


class ToolSchemaError(ChatError):
    """User-supplied tool definitions are not well-formed JSON."""


class MalformedToolCallError(ChatError):
    """The assistant emitted tool calls with a missing or repeated id."""
