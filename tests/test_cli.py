"""
Tests for the terminal client's slash commands.

Run with:
$ pytest -q
"""

import asyncio
import json

from nexuschat.client.cli import _handle_command
from nexuschat.preferences import (
    SELECTED_MODEL_KEY,
    PreferenceStore,
)

from fakes import (
    FakeCompletion,
    make_orchestrator,
)

AVAILABLE = ["nexus-small", "nexus-large"]


def test_model_command_switches_and_persists(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    prefs = PreferenceStore(path)
    orchestrator = make_orchestrator(FakeCompletion())

    asyncio.run(_handle_command("/model nexus-large", orchestrator, AVAILABLE, prefs))

    assert orchestrator.session.model == "nexus-large"
    assert json.loads(path.read_text(encoding="utf-8")) == {SELECTED_MODEL_KEY: "nexus-large"}


def test_unknown_model_is_ignored(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    orchestrator = make_orchestrator(FakeCompletion())

    asyncio.run(
        _handle_command("/model gpt-x", orchestrator, AVAILABLE, PreferenceStore(path))
    )

    assert orchestrator.session.model == "nexus-small"
    assert not path.exists()


def test_new_command_resets_the_transcript(tmp_path) -> None:
    orchestrator = make_orchestrator(FakeCompletion())
    orchestrator.transcript.append(orchestrator.transcript[0].model_copy())

    asyncio.run(
        _handle_command(
            "/new", orchestrator, AVAILABLE, PreferenceStore(tmp_path / "preferences.json")
        )
    )

    assert len(orchestrator.transcript) == 1
