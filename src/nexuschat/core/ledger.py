"""Tool call ledger: resolution status of the tool calls of the latest assistant message."""

import logging
from typing import (
    Dict,
    Iterable,
    List,
)

from nexuschat.core.errors import (
    AlreadyResolvedError,
    MalformedToolCallError,
    UnknownToolCallError,
)
from nexuschat.core.schema import (
    ToolCallRecord,
    ToolCallStatus,
)

logger = logging.getLogger(__name__)


class ToolCallLedger:
    """
    Tracks the tool calls of one round, keyed strictly by id.

    A record is *auto-resolvable* when its name is handled by the active tool-execution service;
    every other record needs a response supplied from outside.
    """

    def __init__(self) -> None:
        self._records: Dict[str, ToolCallRecord] = {}
        self._auto: set[str] = set()

    def open_round(self, records: Iterable[ToolCallRecord], auto_names: Iterable[str]) -> None:
        """
        Forget the previous round and start tracking *records*.

        Raises
        ------
        MalformedToolCallError
            If a record has no id or shares its id with another record.  Nothing is tracked then.
        """
        records = list(records)
        seen: set[str] = set()
        for record in records:
            if not record.id:
                raise MalformedToolCallError(f"Tool call '{record.name}' has no id")
            if record.id in seen:
                raise MalformedToolCallError(f"Tool call id '{record.id}' is used more than once")
            seen.add(record.id)

        handled = set(auto_names)
        self._records = {}
        self._auto = set()
        for record in records:
            self._records[record.id] = record
            if record.name in handled:
                self._auto.add(record.id)
            else:
                record.status = ToolCallStatus.AWAITING_MANUAL_RESPONSE
        logger.debug(
            "Opened tool round: %d auto, %d manual",
            len(self._auto),
            len(self._records) - len(self._auto),
        )

    def clear(self) -> None:
        self._records = {}
        self._auto = set()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    @property
    def records(self) -> List[ToolCallRecord]:
        return list(self._records.values())

    def get(self, call_id: str) -> ToolCallRecord:
        try:
            return self._records[call_id]
        except KeyError:
            raise UnknownToolCallError(f"No tool call with id '{call_id}' in this round") from None

    def is_auto(self, call_id: str) -> bool:
        return call_id in self._auto

    def auto_resolvable(self) -> List[ToolCallRecord]:
        return [rec for rec in self._records.values() if rec.id in self._auto]

    def pending_manual(self) -> List[ToolCallRecord]:
        return [
            rec
            for rec in self._records.values()
            if rec.id not in self._auto and not rec.status.terminal
        ]

    def all_terminal(self) -> bool:
        """Gate for the continuation request."""
        return all(rec.status.terminal for rec in self._records.values())

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def _open_record(self, call_id: str) -> ToolCallRecord:
        record = self.get(call_id)
        if record.status.terminal:
            raise AlreadyResolvedError(
                f"Tool call '{call_id}' is already {record.status.value}"
            )
        return record

    def check_resolvable(self, call_id: str) -> ToolCallRecord:
        """Validate that *call_id* may still be resolved, without changing anything."""
        return self._open_record(call_id)

    def start_auto(self, call_id: str) -> ToolCallRecord:
        record = self._open_record(call_id)
        record.status = ToolCallStatus.AUTO_RESOLVING
        return record

    def resolve(self, call_id: str) -> ToolCallRecord:
        record = self._open_record(call_id)
        record.status = ToolCallStatus.RESOLVED
        logger.debug("Tool call '%s' (%s) resolved", call_id, record.name)
        return record

    def fail(self, call_id: str) -> ToolCallRecord:
        record = self._open_record(call_id)
        record.status = ToolCallStatus.FAILED
        logger.debug("Tool call '%s' (%s) failed", call_id, record.name)
        return record

    def fail_pending(self) -> None:
        """Mark every non-terminal record as failed (used when a round is abandoned)."""
        for record in self._records.values():
            if not record.status.terminal:
                record.status = ToolCallStatus.FAILED
