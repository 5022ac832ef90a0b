"""Typed stream events.

Each named SSE event carries a JSON object. The event name is merged into the
payload as ``type`` and the result is validated against one model per name,
so handlers receive a concrete event class instead of a raw dict.
"""

from __future__ import annotations

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from core.ledger.types import Severity


class EventPayloadError(ValueError):
    """Raised when an event payload cannot be decoded or validated."""

    def __init__(self, event: str, reason: str):
        super().__init__(f"Invalid '{event}' event payload: {reason}")
        self.event = event
        self.reason = reason


class _StreamEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, frozen=True)


class StartEvent(_StreamEvent):
    type: Literal["start"] = "start"
    timestamp: float
    ref_id: str
    operation_id: str
    title: str
    started_by: str | None = None


class MsgEvent(_StreamEvent):
    type: Literal["msg"] = "msg"
    timestamp: float
    ref_id: str
    operation_id: str
    level: Severity = Severity.INFO
    msg: str = ""


class EndEvent(_StreamEvent):
    type: Literal["end"] = "end"
    timestamp: float
    ref_id: str
    operation_id: str
    success: bool
    errormsg: str | None = None


class HistoryEvent(_StreamEvent):
    type: Literal["recent_history"] = "recent_history"
    operation_id: str
    title: str
    started_at: float
    started_by: str | None = None
    success: bool


class ToastEvent(_StreamEvent):
    type: Literal["toast"] = "toast"
    timestamp: float | None = None
    ref_id: str | None = None
    operation_id: str | None = None
    level: Severity = Severity.INFO
    msg: str


class HeartbeatEvent(_StreamEvent):
    type: Literal["heartbeat"] = "heartbeat"
    timestamp: float | None = None
    current_operation: str | None = None
    cmdline: str | None = None


OperationEvent = Union[StartEvent, MsgEvent, EndEvent]

StreamEvent = Annotated[
    Union[StartEvent, MsgEvent, EndEvent, HistoryEvent, ToastEvent, HeartbeatEvent],
    Field(discriminator="type"),
]

EVENT_NAMES: tuple[str, ...] = ("start", "msg", "end", "recent_history", "toast", "heartbeat")

_adapter: TypeAdapter = TypeAdapter(StreamEvent)


def parse_event(name: str, data: str) -> StartEvent | MsgEvent | EndEvent | HistoryEvent | ToastEvent | HeartbeatEvent:
    """Decode the JSON ``data`` of an event named ``name`` into its model."""
    if name not in EVENT_NAMES:
        raise EventPayloadError(name, "unknown event name")
    try:
        payload = json.loads(data) if data else {}
    except json.JSONDecodeError as exc:
        raise EventPayloadError(name, f"malformed JSON ({exc.msg})") from exc
    if not isinstance(payload, dict):
        raise EventPayloadError(name, f"expected a JSON object, got {type(payload).__name__}")

    payload["type"] = name
    try:
        return _adapter.validate_python(payload)
    except ValidationError as exc:
        raise EventPayloadError(name, str(exc.errors(include_url=False))) from exc
