"""Server-pushed operation event stream: connection, reconnection, reconciliation."""

from .client import StreamClient
from .connection import ConnectionManager, StreamConnectionError
from .dispatcher import EventDispatcher
from .events import (
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
from .heartbeat import HeartbeatMonitor
from .progress import parse_progress
from .reconciler import OperationReconciler
from .reconnect import ReconnectionArgs, ReconnectionScheduler, ReconnectOrigin, ReconnectState
from .sse import SSEDecoder, SSEMessage

__all__ = [
    "ConnectionManager",
    "EVENT_NAMES",
    "EndEvent",
    "EventDispatcher",
    "EventPayloadError",
    "HeartbeatEvent",
    "HeartbeatMonitor",
    "HistoryEvent",
    "MsgEvent",
    "OperationReconciler",
    "ReconnectOrigin",
    "ReconnectState",
    "ReconnectionArgs",
    "ReconnectionScheduler",
    "SSEDecoder",
    "SSEMessage",
    "StartEvent",
    "StreamClient",
    "StreamConnectionError",
    "ToastEvent",
    "parse_event",
]
