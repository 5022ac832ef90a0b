"""Route named stream events to their handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable

from core.ledger import SEVERITY_VARIANT
from core.notifications import NotificationSink, Toast
from core.stream.events import (
    EVENT_NAMES,
    EndEvent,
    EventPayloadError,
    HeartbeatEvent,
    HistoryEvent,
    MsgEvent,
    StartEvent,
    ToastEvent,
    parse_event,
)
from core.stream.heartbeat import HeartbeatMonitor
from core.stream.reconciler import OperationReconciler

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Feeds the watchdog on every known event, then dispatches by type.

    ``on_activity`` is called before parsing, so a payload that fails
    validation still proves the connection is alive. Unknown event names are
    ignored entirely.
    """

    def __init__(
        self,
        reconciler: OperationReconciler,
        heartbeat: HeartbeatMonitor,
        notifier: NotificationSink,
        on_activity: Callable[[], None] | None = None,
    ):
        self.reconciler = reconciler
        self.heartbeat = heartbeat
        self.notifier = notifier
        self._on_activity = on_activity
        self._handlers: dict[type, Callable] = {
            StartEvent: self.reconciler.on_operation_event,
            MsgEvent: self.reconciler.on_operation_event,
            EndEvent: self.reconciler.on_operation_event,
            HistoryEvent: self.reconciler.on_history_event,
            HeartbeatEvent: self.heartbeat.on_heartbeat,
            ToastEvent: self.on_toast,
        }

    def dispatch(self, name: str, data: str) -> None:
        if name not in EVENT_NAMES:
            logger.debug("Ignoring unknown stream event '%s'", name)
            return

        if self._on_activity is not None:
            self._on_activity()

        try:
            event = parse_event(name, data)
        except EventPayloadError as exc:
            logger.warning("%s", exc)
            return

        self._handlers[type(event)](event)

    def on_toast(self, event: ToastEvent) -> None:
        self.notifier.notify(Toast(body=event.msg, variant=SEVERITY_VARIANT[event.level]))
