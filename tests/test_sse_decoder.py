"""Tests for the text/event-stream decoder."""

from core.stream.sse import SSEDecoder, SSEMessage


def feed_all(decoder: SSEDecoder, lines: list[str]) -> list[SSEMessage]:
    out = []
    for line in lines:
        msg = decoder.feed(line)
        if msg is not None:
            out.append(msg)
    return out


class TestSSEDecoder:
    def test_named_event(self):
        msgs = feed_all(SSEDecoder(), ["event: heartbeat", 'data: {"current_operation": null}', ""])
        assert msgs == [SSEMessage(event="heartbeat", data='{"current_operation": null}')]

    def test_default_event_name(self):
        msgs = feed_all(SSEDecoder(), ["data: hello", ""])
        assert msgs[0].event == "message"

    def test_multiline_data_joined(self):
        msgs = feed_all(SSEDecoder(), ["event: msg", "data: line1", "data: line2", ""])
        assert msgs[0].data == "line1\nline2"

    def test_comments_ignored(self):
        msgs = feed_all(SSEDecoder(), [": keep-alive", "", "event: toast", "data: {}", ""])
        assert len(msgs) == 1
        assert msgs[0].event == "toast"

    def test_event_without_data_not_dispatched(self):
        decoder = SSEDecoder()
        msgs = feed_all(decoder, ["event: start", "", "data: x", ""])
        assert msgs == [SSEMessage(event="message", data="x")]

    def test_value_without_space(self):
        msgs = feed_all(SSEDecoder(), ["event:end", "data:{}", ""])
        assert msgs[0].event == "end"
        assert msgs[0].data == "{}"

    def test_crlf_and_id(self):
        decoder = SSEDecoder()
        msgs = feed_all(decoder, ["id: 42\r", "event: msg\r", "data: {}\r", "\r"])
        assert msgs[0].id == "42"
        assert decoder.last_event_id == "42"

    def test_state_reset_between_events(self):
        msgs = feed_all(SSEDecoder(), ["event: start", "data: a", "", "data: b", ""])
        assert [m.event for m in msgs] == ["start", "message"]
