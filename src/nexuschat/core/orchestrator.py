"""
Main orchestration loop for Nexus Chat.

One :class:`Orchestrator` drives one :class:`ChatSession`.  A turn starts with a user message and
runs request/response rounds until the assistant answers without tool calls:

    IDLE -> SENDING -> STREAMING -> TOOL_GATE -> CONTINUING -> SENDING -> ... -> IDLE

Everything runs on a single asyncio task per turn.  Only one turn may be in flight; the guard in
:meth:`Orchestrator.start_turn` / :meth:`Orchestrator.send_user_message` is what keeps the
transcript free of concurrent mutation.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
)

from nexuschat.config import (
    Settings,
    settings as default_settings,
)
from nexuschat.core.errors import (
    AlreadyResolvedError,
    ChatError,
    EmptyMessageError,
    InvalidTranscriptError,
    MalformedToolCallError,
    NoModelSelectedError,
    ToolExecutionError,
    ToolRoundLimitError,
    TurnInProgressError,
)
from nexuschat.core.ledger import ToolCallLedger
from nexuschat.core.renderer import (
    NullRenderer,
    Renderer,
)
from nexuschat.core.request_builder import (
    build_request,
    build_request_config,
)
from nexuschat.core.schema import (
    Message,
    Role,
    ToolCallRecord,
)
from nexuschat.core.session import ChatSession
from nexuschat.core.stream_assembler import (
    StreamAssembler,
    message_from_completion,
)
from nexuschat.core.tool_relay import ToolExecutionRelay
from nexuschat.core.transcript import Transcript

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    """States of the orchestration state machine."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"  # also covers waiting on a buffered response
    TOOL_GATE = "tool_gate"
    CONTINUING = "continuing"


class CompletionService(Protocol):
    """What the orchestrator needs from the chat-completions client."""

    async def complete(
        self, payload: Mapping[str, Any], headers: Mapping[str, str] | None = None
    ) -> Dict[str, Any]:
        ...

    def stream(
        self, payload: Mapping[str, Any], headers: Mapping[str, str] | None = None
    ) -> AsyncIterator[Dict[str, Any]]:
        ...


class Orchestrator:
    """
    Turn-level state machine for one chat session.

    Parameters
    ----------
    session:
        Model, tool set, identity headers and the transcript.
    completion:
        Chat-completions client.
    relay:
        Tool execution relay; without one every tool call needs a manual response.
    renderer:
        Display notifications.
    """

    def __init__(
        self,
        session: ChatSession,
        completion: CompletionService,
        relay: Optional[ToolExecutionRelay] = None,
        renderer: Optional[Renderer] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.completion = completion
        self.relay = relay
        self.renderer: Renderer = renderer or NullRenderer()
        self.settings = settings or default_settings
        self.ledger = ToolCallLedger()
        self.state = TurnState.IDLE
        self.last_error: Optional[str] = None
        self.requests_sent = 0
        self._gate = asyncio.Event()
        self._settled = asyncio.Event()
        self._settled.set()
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    @property
    def transcript(self) -> Transcript:
        return self.session.transcript

    @property
    def busy(self) -> bool:
        return self.state is not TurnState.IDLE

    def pending_tool_calls(self) -> List[ToolCallRecord]:
        """Tool calls waiting for a manual response (empty unless in the tool gate)."""
        if self.state is not TurnState.TOOL_GATE:
            return []
        return self.ledger.pending_manual()

    async def wait_until_settled(self) -> None:
        """Return once the session is idle or blocked on manual tool responses."""
        await self._settled.wait()

    # ------------------------------------------------------------------ #
    # Turn entry points
    # ------------------------------------------------------------------ #
    async def send_user_message(self, text: str) -> Optional[Message]:
        """
        Run a full turn for *text* and return the final assistant message.

        Returns ``None`` when the turn was abandoned; the error has been reported to the renderer
        and stored in :attr:`last_error`.

        Raises
        ------
        TurnInProgressError, EmptyMessageError, NoModelSelectedError
            If the turn cannot start.  Nothing is changed in that case.
        """
        turn_mark = self._begin_turn(text)
        return await self._run_turn(turn_mark)

    def start_turn(self, text: str) -> asyncio.Task:
        """Start a turn on a background task; the entry guards run synchronously."""
        turn_mark = self._begin_turn(text)
        self._task = asyncio.create_task(self._run_turn(turn_mark))
        return self._task

    def resolve_tool_call(self, call_id: str, content: str) -> Message:
        """
        Supply the response for a manual tool call.

        Raises
        ------
        UnknownToolCallError
            If *call_id* is not part of the latest tool round.
        AlreadyResolvedError
            If the call is already terminal or is being executed by the tool service.
        """
        self.ledger.check_resolvable(call_id)
        if self.ledger.is_auto(call_id):
            raise AlreadyResolvedError(
                f"Tool call '{call_id}' is resolved by the tool service"
            )
        self.ledger.resolve(call_id)
        message = self.transcript.append(
            Message(role=Role.TOOL, tool_call_id=call_id, content=content)
        )
        logger.info("Manual response recorded for tool call '%s'", call_id)
        if self.ledger.all_terminal():
            # The turn resumes
            self._settled.clear()
            self._gate.set()
        return message

    def reset(self) -> None:
        """Start a new chat: clear the transcript and re-seed the welcome message."""
        if self.busy:
            raise TurnInProgressError("Cannot start a new chat while a turn is in progress")
        self.transcript.reset()
        self.ledger.clear()
        self.last_error = None
        self.renderer.on_status("Ready")
        logger.info("Started new chat session %s", self.session.session_id)

    # ------------------------------------------------------------------ #
    # Turn internals
    # ------------------------------------------------------------------ #
    def _set_state(self, state: TurnState) -> None:
        logger.debug("Session %s: %s -> %s", self.session.session_id, self.state.value, state.value)
        self.state = state
        if state is TurnState.IDLE:
            self._settled.set()
        else:
            self._settled.clear()

    def _begin_turn(self, text: str) -> int:
        if self.busy:
            raise TurnInProgressError("A turn is already in progress")
        text = text.strip()
        if not text:
            raise EmptyMessageError("Message is empty")
        if not self.session.model:
            raise NoModelSelectedError("No model selected")

        self._set_state(TurnState.SENDING)
        self.last_error = None
        turn_mark = len(self.transcript)
        self.transcript.append(Message(role=Role.USER, content=text))
        return turn_mark

    async def _run_turn(self, turn_mark: int) -> Optional[Message]:
        final: Optional[Message] = None
        try:
            final = await self._drive()
        except InvalidTranscriptError as exc:
            self.transcript.truncate(turn_mark)
            self._report(exc)
        except ChatError as exc:
            self._report(exc)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unhandled error in session %s", self.session.session_id)
            self._report(exc)
        else:
            self.renderer.on_status("Ready")
        finally:
            self._set_state(TurnState.IDLE)
        return final

    def _report(self, exc: Exception) -> None:
        logger.warning("Turn abandoned (%s): %s", type(exc).__name__, exc)
        self.last_error = str(exc)
        self.renderer.on_error(f"Error: {exc}")
        self.renderer.on_status("Error occurred")

    async def _drive(self) -> Message:
        rounds = 0
        limit = self.settings.MAX_TOOL_ROUNDS
        while True:
            config = build_request_config(
                self.settings,
                model=self.session.model or "",
                streaming=self.session.streaming,
                tools_offered=self.session.tools_offered,
            )
            payload = build_request(self.transcript, config, self.session.tool_discovery)

            self._set_state(TurnState.SENDING)
            self.renderer.on_status("Thinking...")
            message = await self._receive(payload, config.streaming)

            if not message.tool_calls:
                return message

            round_mark = len(self.transcript) - 1
            rounds += 1
            if limit is not None and rounds > limit:
                self.transcript.truncate(round_mark)
                raise ToolRoundLimitError(f"Assistant requested more than {limit} tool rounds")

            self._set_state(TurnState.TOOL_GATE)
            await self._resolve_tools(message, round_mark)
            self._set_state(TurnState.CONTINUING)

    async def _receive(self, payload: Dict[str, Any], streaming: bool) -> Message:
        """Send *payload*, append the finalized assistant message and return it."""
        self._set_state(TurnState.STREAMING)
        self.requests_sent += 1
        headers = self.session.identity_headers()

        if streaming:
            assembler = StreamAssembler()
            message = await assembler.consume(
                self.completion.stream(payload, headers), self.renderer
            )
            if assembler.interruption is not None:
                self.transcript.append(message)
                self.renderer.on_final_message(message)
                raise assembler.interruption
        else:
            response = await self.completion.complete(payload, headers)
            message = message_from_completion(response)

        self.transcript.append(message)
        self.renderer.on_final_message(message)
        return message

    async def _resolve_tools(self, message: Message, round_mark: int) -> None:
        handled = self.relay.handled_names if self.relay is not None else frozenset()
        try:
            self.ledger.open_round(message.tool_calls, handled)
        except MalformedToolCallError:
            self.ledger.clear()
            self.transcript.truncate(round_mark)
            raise

        auto = self.ledger.auto_resolvable()
        if auto and self.relay is not None:
            try:
                for record in auto:
                    await self.relay.execute(record, self.transcript, self.ledger)
            except ToolExecutionError:
                # Abandon the whole round so no tool call is left unanswered
                self.ledger.fail_pending()
                self.transcript.truncate(round_mark)
                raise

        if not self.ledger.all_terminal():
            pending = [rec.name for rec in self.ledger.pending_manual()]
            logger.info("Waiting for manual responses to %s", pending)
            self._gate.clear()
            self.renderer.on_status("Waiting for tool responses")
            self._settled.set()
            await self._gate.wait()
