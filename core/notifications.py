"""Notification sink used for toasts and failed-operation reports."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class Variant(str, Enum):
    """Presentation variant used by renderers and toasts."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


_VARIANT_LOG_LEVEL = {
    Variant.SUCCESS: logging.INFO,
    Variant.INFO: logging.INFO,
    Variant.WARNING: logging.WARNING,
    Variant.DANGER: logging.ERROR,
}


@dataclass(frozen=True)
class Toast:
    body: str
    variant: Variant


class NotificationSink(Protocol):
    """Fire-and-forget notification target."""

    def notify(self, toast: Toast) -> None: ...


class LoggingNotificationSink:
    """Default sink: writes toasts to the log."""

    def notify(self, toast: Toast) -> None:
        logger.log(_VARIANT_LOG_LEVEL[toast.variant], "[toast:%s] %s", toast.variant.value, toast.body)


class CallbackNotificationSink:
    """Adapts a plain callable to the NotificationSink interface."""

    def __init__(self, callback: Callable[[Toast], None]):
        self._callback = callback

    def notify(self, toast: Toast) -> None:
        try:
            self._callback(toast)
        except Exception:
            logger.exception("Notification callback failed for toast %r", toast.body)
