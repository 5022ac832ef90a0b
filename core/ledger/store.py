"""In-memory operation ledger.

Append-ordered store of operation records. Records are created either by the
request layer or by the stream reconciler (``external=True``) and closed
exactly once; closing an already-closed record is a no-op.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from core.ledger.types import OperationRecord, OperationSpec, OperationStatus
from core.notifications import NotificationSink, Toast, Variant

logger = logging.getLogger(__name__)

LedgerListener = Callable[[str, OperationRecord], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class OperationLedger:
    """Insertion-ordered record store with create/close and change listeners."""

    def __init__(self, notifier: NotificationSink | None = None):
        self._records: list[OperationRecord] = []
        self._notifier = notifier
        self._listeners: list[LedgerListener] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def records(self) -> tuple[OperationRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def find_last(self, predicate: Callable[[OperationRecord], bool]) -> OperationRecord | None:
        """Return the most recently added record matching predicate."""
        for record in reversed(self._records):
            if predicate(record):
                return record
        return None

    def pending(self) -> list[OperationRecord]:
        return [r for r in self._records if r.is_pending]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def create(self, spec: OperationSpec) -> OperationRecord:
        record = OperationRecord(
            id=spec.id,
            title=spec.title,
            started_at=spec.started_at,
            caller=spec.caller,
            external=spec.external,
            operation_id=spec.operation_id,
            status=spec.status,
            show_modal=spec.show_modal,
        )
        if record.status != OperationStatus.PENDING:
            record.ended_at = record.started_at
        self._records.append(record)
        logger.debug("Ledger: created %s (%s, external=%s)", record.id, record.status.value, record.external)
        self._emit("created", record)
        return record

    def close(
        self,
        record: OperationRecord,
        success: bool,
        error_message: str | None = None,
        suppress_error_notification: bool = False,
    ) -> bool:
        """Close a pending record. Returns False if it was already closed."""
        if not record.is_pending:
            logger.debug("Ledger: %s already closed (%s), ignoring close", record.id, record.status.value)
            return False

        record.status = OperationStatus.SUCCESS if success else OperationStatus.ERROR
        record.error_message = error_message
        record.ended_at = _now_ms()
        logger.debug("Ledger: closed %s as %s", record.id, record.status.value)

        if not success and not suppress_error_notification and self._notifier:
            body = f"{record.title}: {error_message}" if error_message else f"{record.title} failed"
            self._notifier.notify(Toast(body=body, variant=Variant.DANGER))

        self._emit("closed", record)
        return True

    def touch(self, record: OperationRecord) -> None:
        """Signal an in-place update (title, progress, messages) to listeners."""
        self._emit("updated", record)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_change(self, listener: LedgerListener) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: str, record: OperationRecord) -> None:
        for listener in self._listeners:
            try:
                listener(kind, record)
            except Exception:
                logger.exception("Ledger listener failed on %s for %s", kind, record.id)
