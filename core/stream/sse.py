"""Incremental decoder for the text/event-stream line protocol."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SSEMessage:
    event: str
    data: str
    id: str | None = None


class SSEDecoder:
    """Feed lines (without trailing newline); get a message on each blank line."""

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._last_id: str | None = None

    @property
    def last_event_id(self) -> str | None:
        return self._last_id

    def feed(self, line: str) -> SSEMessage | None:
        line = line.rstrip("\r")
        if line == "":
            return self._flush()
        if line.startswith(":"):
            # comment / keep-alive
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._last_id = value
        # "retry" and unknown fields are ignored: reconnection is driven by the scheduler
        return None

    def _flush(self) -> SSEMessage | None:
        if not self._data:
            # An event block without data lines is not dispatched
            self._event = ""
            return None
        message = SSEMessage(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_id,
        )
        self._event = ""
        self._data = []
        return message
