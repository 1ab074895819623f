"""
Tests for the tool call ledger.

Run with:
$ pytest -q
"""

import pytest

from nexuschat.core.errors import (
    AlreadyResolvedError,
    MalformedToolCallError,
    UnknownToolCallError,
)
from nexuschat.core.ledger import ToolCallLedger
from nexuschat.core.schema import (
    ToolCallRecord,
    ToolCallStatus,
)


def _ledger() -> ToolCallLedger:
    ledger = ToolCallLedger()
    ledger.open_round(
        [
            ToolCallRecord(id="c1", name="calculate"),
            ToolCallRecord(id="c2", name="get_weather"),
        ],
        auto_names={"calculate"},
    )
    return ledger


def test_classification_by_handled_names() -> None:
    ledger = _ledger()
    assert [rec.id for rec in ledger.auto_resolvable()] == ["c1"]
    assert [rec.id for rec in ledger.pending_manual()] == ["c2"]
    assert ledger.get("c1").status is ToolCallStatus.PROPOSED
    assert ledger.get("c2").status is ToolCallStatus.AWAITING_MANUAL_RESPONSE


def test_gate_opens_only_when_every_call_is_terminal() -> None:
    ledger = _ledger()
    assert not ledger.all_terminal()

    ledger.start_auto("c1")
    ledger.resolve("c1")
    assert not ledger.all_terminal()

    ledger.fail("c2")
    assert ledger.all_terminal()


def test_unknown_id_is_rejected_without_state_change() -> None:
    ledger = _ledger()
    with pytest.raises(UnknownToolCallError):
        ledger.resolve("nope")
    assert [rec.status for rec in ledger.records] == [
        ToolCallStatus.PROPOSED,
        ToolCallStatus.AWAITING_MANUAL_RESPONSE,
    ]


def test_duplicate_resolution_is_rejected() -> None:
    ledger = _ledger()
    ledger.resolve("c2")
    with pytest.raises(AlreadyResolvedError):
        ledger.resolve("c2")
    with pytest.raises(AlreadyResolvedError):
        ledger.fail("c2")
    assert ledger.get("c2").status is ToolCallStatus.RESOLVED


def test_empty_round_is_trivially_terminal() -> None:
    ledger = ToolCallLedger()
    ledger.open_round([], auto_names=())
    assert ledger.all_terminal()


def test_fail_pending_closes_the_round() -> None:
    ledger = _ledger()
    ledger.resolve("c1")
    ledger.fail_pending()
    assert ledger.get("c1").status is ToolCallStatus.RESOLVED
    assert ledger.get("c2").status is ToolCallStatus.FAILED
    assert ledger.all_terminal()


def test_repeated_id_is_rejected_and_previous_round_kept() -> None:
    ledger = _ledger()
    with pytest.raises(MalformedToolCallError, match="c9"):
        ledger.open_round(
            [
                ToolCallRecord(id="c9", name="get_weather"),
                ToolCallRecord(id="c9", name="get_weather"),
            ],
            auto_names=(),
        )
    assert [rec.id for rec in ledger.records] == ["c1", "c2"]


def test_missing_id_is_rejected() -> None:
    ledger = ToolCallLedger()
    with pytest.raises(MalformedToolCallError, match="calculate"):
        ledger.open_round([ToolCallRecord(id="", name="calculate")], auto_names={"calculate"})
    assert ledger.records == []
