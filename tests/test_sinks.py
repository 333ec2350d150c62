"""
Tests for event sinks
"""

import asyncio
import json
import logging
from datetime import datetime, timezone

import httpx

from proctorwatch.proctor.events import EventKind, ViolationEvent
from proctorwatch.proctor.sinks import (
    CompositeEventSink,
    EventLog,
    EventSink,
    HttpEventSink,
    LoggingEventSink,
)

SINK_URL = "http://events.test/api/log"


def make_event(kind=EventKind.PHONE_DETECTED):
    return ViolationEvent(kind=kind, occurred_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc))


class RecordingHandler:
    """MockTransport handler remembering every request"""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})


class TestEventLog:
    """Tests for the in-memory log"""

    def test_keeps_emission_order(self):
        log = EventLog()
        log.on_violation(make_event(EventKind.NO_FACE_DETECTED))
        log.on_violation(make_event(EventKind.BOOK_DETECTED))
        log.on_violation(make_event(EventKind.NO_FACE_DETECTED))

        assert [e.kind for e in log] == [
            EventKind.NO_FACE_DETECTED,
            EventKind.BOOK_DETECTED,
            EventKind.NO_FACE_DETECTED
        ]
        assert len(log) == 3
        assert log.counts() == {"NO_FACE_DETECTED": 2, "BOOK_DETECTED": 1}

    def test_events_returns_a_copy(self):
        log = EventLog()
        log.on_violation(make_event())

        log.events.clear()
        assert len(log) == 1


class TestLoggingEventSink:
    """Tests for the log-line sink"""

    def test_writes_proctor_line(self, caplog):
        sink = LoggingEventSink("EXM_ABC123")

        with caplog.at_level(logging.WARNING):
            sink.on_violation(make_event(EventKind.LOOKING_AWAY))

        assert "[PROCTOR] session=EXM_ABC123 event=violation kind=LOOKING_AWAY" in caplog.text


class TestCompositeEventSink:
    """Tests for fan-out"""

    def test_failing_sink_does_not_stop_others(self, caplog):
        class BrokenSink(EventSink):
            def on_violation(self, event):
                raise RuntimeError("disk full")

        first, last = EventLog(), EventLog()
        sink = CompositeEventSink([first, BrokenSink(), last])

        with caplog.at_level(logging.WARNING):
            sink.on_violation(make_event())

        assert len(first) == 1
        assert len(last) == 1
        assert "BrokenSink failed for PHONE_DETECTED" in caplog.text


class TestHttpEventSink:
    """Tests for forwarding to a remote log endpoint"""

    def test_send_posts_payload(self):
        handler = RecordingHandler()
        sink = HttpEventSink(SINK_URL, session_id="EXM_ABC123", transport=httpx.MockTransport(handler))

        assert sink.send(make_event()) is True

        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == SINK_URL
        assert json.loads(request.content) == {
            "eventType": "PHONE_DETECTED",
            "interviewId": "EXM_ABC123",
            "occurredAt": "2024-05-01T09:30:00+00:00"
        }

    def test_server_error_is_logged_and_dropped(self, caplog):
        sink = HttpEventSink(SINK_URL, session_id="s1", transport=httpx.MockTransport(RecordingHandler(500)))

        with caplog.at_level(logging.ERROR):
            assert sink.send(make_event()) is False

        assert "Error forwarding event PHONE_DETECTED" in caplog.text

    def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        sink = HttpEventSink(SINK_URL, session_id="s1", transport=httpx.MockTransport(refuse))

        assert sink.send(make_event()) is False

    def test_without_event_loop_sends_inline(self):
        handler = RecordingHandler()
        sink = HttpEventSink(SINK_URL, session_id="s1", transport=httpx.MockTransport(handler))

        sink.on_violation(make_event(EventKind.BOOK_DETECTED))

        assert len(handler.requests) == 1

    def test_on_event_loop_sends_in_background(self):
        handler = RecordingHandler()
        sink = HttpEventSink(SINK_URL, session_id="s1", async_transport=httpx.MockTransport(handler))

        async def run():
            sink.on_violation(make_event(EventKind.MULTIPLE_FACES_DETECTED))
            assert handler.requests == []
            await asyncio.gather(*list(sink._tasks))

        asyncio.run(run())

        assert len(handler.requests) == 1
        assert json.loads(handler.requests[0].content)["eventType"] == "MULTIPLE_FACES_DETECTED"
        assert not sink._tasks

    def test_send_async_failure(self):
        sink = HttpEventSink(SINK_URL, session_id="s1", async_transport=httpx.MockTransport(RecordingHandler(503)))

        assert asyncio.run(sink.send_async(make_event())) is False

    def test_malformed_url_is_logged_and_dropped(self, caplog):
        """A URL httpx refuses to parse never escapes the sink"""
        handler = RecordingHandler()
        sink = HttpEventSink(
            "http://events.test/\x00log",
            session_id="s1",
            transport=httpx.MockTransport(handler),
            async_transport=httpx.MockTransport(handler)
        )

        with caplog.at_level(logging.ERROR):
            assert sink.send(make_event()) is False
            assert asyncio.run(sink.send_async(make_event())) is False

        assert handler.requests == []
        assert "PHONE_DETECTED" in caplog.text

    def test_malformed_url_in_background_task(self):
        sink = HttpEventSink("http://events.test/\x00log", session_id="s1")

        async def run():
            sink.on_violation(make_event())
            return await asyncio.gather(*list(sink._tasks))

        assert asyncio.run(run()) == [False]
