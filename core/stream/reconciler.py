"""Reconcile operation events into the ledger.

Events are delivered at least once, possibly replayed after a reconnection,
so every handler is create-if-absent and tolerant of duplicates.
"""

from __future__ import annotations

import logging

from core.ledger import (
    OperationLedger,
    OperationMessage,
    OperationRecord,
    OperationSpec,
    OperationStatus,
    is_ok_severity,
)
from core.stream.events import EndEvent, HistoryEvent, MsgEvent, OperationEvent, StartEvent
from core.stream.progress import normalize_newlines, parse_progress

logger = logging.getLogger(__name__)


def to_millis(seconds: float) -> int:
    return round(seconds * 1000)


class OperationReconciler:
    """Maps start/msg/end/recent_history events onto ledger records."""

    def __init__(self, ledger: OperationLedger):
        self.ledger = ledger

    # ── start / msg / end ──

    def on_operation_event(self, event: OperationEvent) -> OperationRecord:
        record = self._find_or_create(event)

        if isinstance(event, StartEvent):
            self._apply_start(record, event)
        elif isinstance(event, MsgEvent):
            self._apply_msg(record, event)
        elif isinstance(event, EndEvent):
            self._apply_end(record, event)
        return record

    def _find_or_create(self, event: OperationEvent) -> OperationRecord:
        # Last match wins: ids may repeat across server restarts
        record = self.ledger.find_last(lambda r: r.id == event.ref_id)
        if record is not None:
            return record

        logger.debug("No record for ref %s, creating external record", event.ref_id)
        return self.ledger.create(
            OperationSpec(
                id=event.ref_id,
                title=event.title if isinstance(event, StartEvent) else event.operation_id,
                started_at=to_millis(event.timestamp),
                external=True,
            )
        )

    def _apply_start(self, record: OperationRecord, event: StartEvent) -> None:
        record.operation_id = event.operation_id
        record.title = event.title
        record.caller = event.started_by
        self.ledger.touch(record)

    def _apply_msg(self, record: OperationRecord, event: MsgEvent) -> None:
        progress, text = parse_progress(normalize_newlines(event.msg))
        if progress is not None:
            record.progress = progress

        record.messages.append(OperationMessage(text=text, severity=event.level))
        if not is_ok_severity(event.level):
            record.severity_counts[event.level] += 1
        self.ledger.touch(record)

    def _apply_end(self, record: OperationRecord, event: EndEvent) -> None:
        if not record.external:
            # Records opened by a direct request are closed by that request's response
            logger.debug("Ignoring end for non-external record %s", record.id)
            return
        self.ledger.close(record, success=event.success, error_message=event.errormsg)

    # ── recent_history ──

    def on_history_event(self, event: HistoryEvent) -> OperationRecord | None:
        existing = self.ledger.find_last(lambda r: r.operation_id == event.operation_id)
        if existing is not None:
            logger.debug("History replay for %s already in ledger", event.operation_id)
            return None

        return self.ledger.create(
            OperationSpec(
                id=event.operation_id,
                operation_id=event.operation_id,
                title=event.title,
                started_at=to_millis(event.started_at),
                caller=event.started_by,
                external=True,
                status=OperationStatus.SUCCESS if event.success else OperationStatus.ERROR,
                show_modal=False,
            )
        )
