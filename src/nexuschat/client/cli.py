"""Interactive terminal client for Nexus Chat."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import (
    Optional,
    Tuple,
)

from nexuschat.bootstrap import (
    build_completion_client,
    build_tool_service,
    create_orchestrator,
)
from nexuschat.common import (
    AnsiColors,
    colored_print,
)
from nexuschat.config import (
    Settings,
    settings as default_settings,
)
from nexuschat.core.errors import (
    ChatError,
    TransportError,
)
from nexuschat.core.orchestrator import Orchestrator
from nexuschat.core.schema import (
    Message,
    ToolCallRecord,
)
from nexuschat.core.session import select_model
from nexuschat.preferences import (
    SELECTED_MODEL_KEY,
    PreferenceStore,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
class ConsoleRenderer:
    """Prints streamed text as it grows and the final message once complete."""

    def __init__(self) -> None:
        self._printed = 0

    def on_status(self, status: str) -> None:
        logger.debug("Status: %s", status)
        if status == "Thinking...":
            colored_print("\n🤖 Assistant: ", AnsiColors.YELLOW, end="", flush=True)
            self._printed = 0

    def on_partial_text(self, text: str) -> None:
        # Only the new suffix is printed; the text only ever grows
        colored_print(text[self._printed :], AnsiColors.YELLOW, end="", flush=True)
        self._printed = len(text)

    def on_final_message(self, message: Message) -> None:
        content = message.content or ""
        if len(content) > self._printed:
            colored_print(content[self._printed :], AnsiColors.YELLOW, end="")
        print()
        for call in message.tool_calls:
            colored_print(f"🔧 {call.name}({call.arguments_raw})", AnsiColors.GREY)
        self._printed = 0

    def on_error(self, text: str) -> None:
        colored_print(f"\n⚠️ {text}", AnsiColors.RED)


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def _describe_call(call: ToolCallRecord) -> str:
    try:
        args = json.dumps(json.loads(call.arguments_raw or "{}"), indent=2)
    except json.JSONDecodeError:
        args = call.arguments_raw
    return f"{call.name} [{call.id}]\n{args}"


async def _ask(prompt: str, color: AnsiColors) -> Tuple[str, bool]:
    colored_print(prompt, color, end="", flush=True)
    return await asyncio.to_thread(get_user_message)


async def _collect_manual_responses(orchestrator: Orchestrator) -> bool:
    """Prompt the operator for every pending tool call; False if input was closed."""
    while orchestrator.pending_tool_calls():
        for call in orchestrator.pending_tool_calls():
            colored_print(
                f"\n🔧 Tool call needs a response: {_describe_call(call)}", AnsiColors.GREEN
            )
            answer, ok = await _ask("📝 Response: ", AnsiColors.BLUE)
            if not ok:
                return False
            try:
                orchestrator.resolve_tool_call(call.id, answer)
            except ChatError as exc:
                colored_print(f"⚠️ {exc}", AnsiColors.RED)
        await orchestrator.wait_until_settled()
    return True


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
async def _handle_command(
    command: str,
    orchestrator: Orchestrator,
    available: list[str],
    prefs: PreferenceStore,
) -> None:
    name, _, arg = command.partition(" ")
    if name == "/new":
        orchestrator.reset()
        colored_print(orchestrator.transcript[0].content or "", AnsiColors.YELLOW)
    elif name == "/models":
        for model_id in available:
            marker = "*" if model_id == orchestrator.session.model else " "
            colored_print(f" {marker} {model_id}", AnsiColors.GREEN)
    elif name == "/model":
        if arg not in available:
            colored_print(f"⚠️ Unknown model '{arg}'", AnsiColors.RED)
            return
        orchestrator.session.model = arg
        await asyncio.to_thread(prefs.set, SELECTED_MODEL_KEY, arg)
        colored_print(f"Using model {arg}", AnsiColors.GREEN)
    else:
        colored_print("Commands: /new, /models, /model <id>, exit", AnsiColors.BLUE)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------
async def chat_loop(settings: Settings, prefs: Optional[PreferenceStore] = None) -> None:
    """Run the interactive chat until the user exits."""
    prefs = prefs or PreferenceStore()
    completion = build_completion_client(settings)
    tool_service = build_tool_service(settings)

    try:
        try:
            available = await completion.list_models()
        except TransportError as exc:
            colored_print(f"⚠️ {exc}", AnsiColors.RED)
            available = []
        model = settings.MODEL or select_model(available, prefs.get(SELECTED_MODEL_KEY))
        if model is None:
            colored_print("⚠️ No models available; sending is disabled.", AnsiColors.RED)
            return
        await asyncio.to_thread(prefs.set, SELECTED_MODEL_KEY, model)

        orchestrator = await create_orchestrator(
            settings, completion, tool_service, model, renderer=ConsoleRenderer()
        )
        colored_print(
            f"🔮 Nexus Chat - connected to {settings.ENDPOINT} using {model}. "
            "Type 'exit' or 'quit' (or Ctrl+C) to exit, /help for commands.",
            AnsiColors.GREEN,
        )
        colored_print(orchestrator.transcript[0].content or "", AnsiColors.YELLOW)

        while True:
            user_msg, ok = await _ask("\n🧑 You: ", AnsiColors.BLUE)
            if not ok or user_msg.lower() in {"exit", "quit"}:
                break
            if not user_msg:
                continue
            if user_msg.startswith("/"):
                await _handle_command(user_msg, orchestrator, available, prefs)
                continue

            orchestrator.start_turn(user_msg)
            await orchestrator.wait_until_settled()
            if not await _collect_manual_responses(orchestrator):
                break
    finally:
        await completion.aclose()
        if tool_service is not None:
            await tool_service.aclose()


def run_cli(settings: Optional[Settings] = None, prefs: Optional[PreferenceStore] = None) -> None:
    """Run the CLI client."""
    asyncio.run(chat_loop(settings or default_settings, prefs))


if __name__ == "__main__":
    run_cli()
