"""Heartbeat interpretation: orphaned operations and external lock holders."""

from __future__ import annotations

import logging
import time

from core.ledger import OperationLedger, OperationRecord, OperationSpec
from core.stream.events import HeartbeatEvent
from core.stream.reconciler import to_millis

logger = logging.getLogger(__name__)

LOCK_CALLER = "cli"


class HeartbeatMonitor:
    """Reconciles the server's lock state with pending ledger records.

    A null ``current_operation`` means nothing holds the lock, so any pending
    external record is stale (its process died before sending ``end``). A
    token with the lock prefix means a process outside the operation protocol
    (e.g. an interactive shell) holds the lock; it is surfaced as a
    pseudo-lock record until the lock is released.
    """

    def __init__(self, ledger: OperationLedger, lock_prefix: str = "lock"):
        self.ledger = ledger
        self.lock_prefix = lock_prefix
        self._lock_record: OperationRecord | None = None

    @property
    def lock_record(self) -> OperationRecord | None:
        return self._lock_record

    def on_heartbeat(self, event: HeartbeatEvent) -> None:
        current = event.current_operation
        if current is None:
            self._release()
        elif current.startswith(self.lock_prefix):
            self._track_lock(current, event.cmdline)

    def _release(self) -> None:
        was_lock = self._lock_record is not None
        record = self._lock_record or self.ledger.find_last(lambda r: r.external and r.is_pending)
        if record is None:
            return

        if was_lock:
            logger.info("Lock released by %s", record.title)
        else:
            logger.warning("Closing orphaned operation %s (%s): server holds no lock", record.id, record.title)
        self.ledger.close(record, success=was_lock, suppress_error_notification=True)
        self._lock_record = None

    def _track_lock(self, token: str, cmdline: str | None) -> None:
        if self._lock_record is not None:
            return
        self._lock_record = self.ledger.create(
            OperationSpec(
                id=token,
                title=cmdline or token,
                started_at=self._lock_started_at(token),
                caller=LOCK_CALLER,
                external=True,
            )
        )
        logger.info("Lock held outside of operations: %s", self._lock_record.title)

    @staticmethod
    def _lock_started_at(token: str) -> int:
        # Token format: "<prefix>-<unix seconds>"
        parts = token.split("-")
        suffix = parts[1] if len(parts) > 1 else ""
        try:
            return to_millis(float(suffix))
        except ValueError:
            logger.debug("Lock token %r carries no timestamp, using current time", token)
            return to_millis(time.time())
