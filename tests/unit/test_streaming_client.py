"""Unit tests for the streaming speech client session."""

import asyncio
import json

import pytest
import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from callassist.client.streaming import (
    SessionState,
    StreamingSession,
    build_speech_url,
    parse_message,
)
from callassist.constants import DEMO_CHUNK
from callassist.errors import MalformedMessage, TransportFailure

_CLOSED = object()


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, events: list):
        self.events = events
        self.sent: list[bytes] = []
        self.close_calls = 0
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self._incoming: asyncio.Queue = asyncio.Queue()
        self._error: Exception | None = None

    def push(self, message):
        self._incoming.put_nowait(message)

    def remote_close(self, code: int = 1001, reason: str = "going away"):
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)

    def remote_abort(self):
        self.close_code = 1006
        self.close_reason = ""
        self._error = ConnectionClosedError(None, None)
        self._incoming.put_nowait(_CLOSED)

    async def send(self, data):
        if self.close_code is not None:
            raise ConnectionClosedOK(Close(self.close_code, self.close_reason or ""), None)
        self.sent.append(data)
        self.events.append(("send", data))

    async def close(self, code: int = 1000, reason: str = ""):
        self.close_calls += 1
        self.events.append(("close",))
        if self.close_code is None:
            self.close_code = code
            self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        while True:
            item = await self._incoming.get()
            if item is _CLOSED:
                if self._error is not None:
                    raise self._error
                return
            yield item


@pytest.fixture
def events():
    return []


@pytest.fixture
def conn(events):
    return FakeConnection(events)


def make_session(conn, events, **kwargs):
    async def connect(url):
        events.append(("connect", url))
        return conn

    async def sleep(delay):
        events.append(("sleep", delay))
        await asyncio.sleep(0)

    kwargs.setdefault("on_transcript", lambda m: None)
    kwargs.setdefault("on_malformed", lambda e: None)
    return StreamingSession(
        build_speech_url("test_user"),
        connect=connect,
        sleep=sleep,
        **kwargs,
    )


class TestBuildSpeechUrl:
    """Tests for the connection target URL."""

    def test_plain_username(self):
        """Plain usernames go into the Username parameter."""
        url = build_speech_url("test_user")
        assert url == "ws://localhost:8080/api/speech?Username=test_user"

    def test_username_is_percent_encoded(self):
        """Special characters should be percent-encoded."""
        url = build_speech_url("Jürgen Müller&co/1?", host="example.com", port=9000)
        assert url == (
            "ws://example.com:9000/api/speech"
            "?Username=J%C3%BCrgen%20M%C3%BCller%26co%2F1%3F"
        )

    def test_empty_username_rejected(self):
        """Empty usernames should be rejected."""
        with pytest.raises(ValueError):
            build_speech_url("")


class TestParseMessage:
    """Tests for inbound message parsing."""

    def test_transcript_message(self):
        """Transcript and final flag should be surfaced."""
        msg = parse_message('{"transcript":"hello","final":false}')
        assert msg.transcript == "hello"
        assert msg.final is False

    def test_bytes_payload(self):
        """Binary frames should parse too."""
        msg = parse_message(b'{"transcript":"hallo","final":true}')
        assert msg.transcript == "hallo"
        assert msg.final is True

    def test_missing_fields_are_tolerated(self):
        """Missing fields should come back as None."""
        msg = parse_message('{"status":"complete"}')
        assert msg.transcript is None
        assert msg.final is None
        assert msg.raw == {"status": "complete"}

    def test_invalid_json(self):
        """Invalid JSON should raise MalformedMessage."""
        with pytest.raises(MalformedMessage) as exc_info:
            parse_message("not-json")
        assert exc_info.value.payload == "not-json"

    def test_non_object_json(self):
        """Non-object JSON should raise MalformedMessage."""
        with pytest.raises(MalformedMessage):
            parse_message("[1, 2, 3]")


class TestSendLoop:
    """Tests for the timed send loop and the close that follows it."""

    @pytest.mark.asyncio
    async def test_sends_exactly_five_chunks(self, conn, events):
        """Exactly 5 chunks should be sent."""
        session = make_session(conn, events)
        result = await session.run()

        assert result.ok
        assert result.chunks_sent == 5
        assert conn.sent == [DEMO_CHUNK] * 5
        assert DEMO_CHUNK == b"\x00\x01\x02\x03\x04"

    @pytest.mark.asyncio
    async def test_one_send_per_tick_then_delayed_close(self, conn, events):
        """One send per tick, then one more tick and the close delay."""
        session = make_session(conn, events)
        await session.run()

        expected = [("connect", session.url)]
        expected += [("sleep", 1.0), ("send", DEMO_CHUNK)] * 5
        # Tick that exhausts the counter, then the close delay
        expected += [("sleep", 1.0), ("sleep", 1.0), ("close",)]
        assert events == expected

    @pytest.mark.asyncio
    async def test_closes_exactly_once(self, conn, events):
        """The channel should be closed exactly once."""
        session = make_session(conn, events)
        result = await session.run()

        assert conn.close_calls == 1
        assert session.state is SessionState.CLOSED
        assert result.close_code == 1000

    @pytest.mark.asyncio
    async def test_custom_limit_and_timing(self, conn, events):
        """Limit, interval and delay should be configurable."""
        session = make_session(
            conn, events, chunk=b"abc", chunk_limit=2, interval=0.5, close_delay=2.0
        )
        result = await session.run()

        assert result.chunks_sent == 2
        assert conn.sent == [b"abc", b"abc"]
        assert events[-3:] == [("sleep", 0.5), ("sleep", 2.0), ("close",)]

    @pytest.mark.asyncio
    async def test_run_twice_rejected(self, conn, events):
        """A session can only run once."""
        session = make_session(conn, events)
        await session.run()
        with pytest.raises(RuntimeError):
            await session.run()


class TestReceive:
    """Tests for inbound message handling."""

    @pytest.mark.asyncio
    async def test_reports_transcript_and_final_flag(self, conn, events):
        """Parsed messages should reach on_transcript."""
        seen = []
        session = make_session(conn, events, on_transcript=seen.append)
        conn.push('{"transcript":"hello","final":false}')

        result = await session.run()

        assert len(seen) == 1
        assert seen[0].transcript == "hello"
        assert seen[0].final is False
        assert result.transcripts == seen

    @pytest.mark.asyncio
    async def test_malformed_message_does_not_close(self, conn, events):
        """Invalid JSON should be reported without ending the session."""
        errors = []
        session = make_session(conn, events, on_malformed=errors.append)
        conn.push("not-json")
        conn.push(json.dumps({"transcript": "danke", "final": True}))

        result = await session.run()

        assert len(errors) == 1
        assert isinstance(errors[0], MalformedMessage)
        assert result.malformed == errors
        # Session kept going after the bad message
        assert [m.transcript for m in result.transcripts] == ["danke"]
        assert result.chunks_sent == 5
        assert conn.close_calls == 1
        assert result.ok


class TestClose:
    """Tests for remote close and channel errors."""

    @pytest.mark.asyncio
    async def test_remote_close_before_first_tick(self, conn, events):
        """A remote close should be reported with its code."""
        closes = []
        session = make_session(conn, events, on_close=lambda c, r: closes.append((c, r)))
        conn.remote_close(1001, "going away")

        result = await session.run()

        assert closes == [(1001, "going away")]
        assert result.close_code == 1001
        assert result.chunks_sent == 0
        assert conn.close_calls == 0
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_remote_close_stops_send_loop(self, conn, events):
        """A remote close should stop further sends."""
        ticks = 0

        async def sleep(delay):
            nonlocal ticks
            ticks += 1
            if ticks == 3:
                conn.remote_close(1000, "done")
            await asyncio.sleep(0)

        async def connect(url):
            return conn

        session = StreamingSession(
            build_speech_url("test_user"), connect=connect, sleep=sleep
        )
        result = await session.run()

        assert result.chunks_sent == 2
        assert conn.close_calls == 0
        assert result.close_code == 1000
        assert result.ok

    @pytest.mark.asyncio
    async def test_abnormal_close_reports_error(self, conn, events):
        """An abnormal close should be reported as an error."""
        errors = []
        session = make_session(conn, events, on_error=errors.append)
        conn.remote_abort()

        result = await session.run()

        assert len(errors) == 1
        assert isinstance(result.error, TransportFailure)
        assert isinstance(result.error.cause, ConnectionClosedError)
        assert result.close_code == 1006
        assert session.state is SessionState.CLOSED
        assert not result.ok

    @pytest.mark.asyncio
    async def test_connect_failure_is_terminal(self, events):
        """Connect failures should not be retried."""
        errors = []
        attempts = 0

        async def connect(url):
            nonlocal attempts
            attempts += 1
            raise OSError("Connection refused")

        session = StreamingSession(
            build_speech_url("test_user"), connect=connect, on_error=errors.append
        )
        result = await session.run()

        assert attempts == 1
        assert session.state is SessionState.CLOSED
        assert isinstance(result.error, TransportFailure)
        assert isinstance(result.error.cause, OSError)
        assert errors == [result.error]
        assert result.chunks_sent == 0


class TestAgainstWebsocketServer:
    """Runs the session against a real local websockets server."""

    @pytest.mark.asyncio
    @pytest.mark.timeout(10)
    async def test_round_trip(self):
        """Chunks and transcripts should flow through a real server."""
        received = []

        async def handler(ws):
            async for message in ws:
                received.append(message)
                await ws.send(
                    json.dumps({"transcript": f"chunk {len(received)}", "final": False})
                )

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            session = StreamingSession.for_user(
                "test user", host="127.0.0.1", port=port, interval=0.05, close_delay=0.05
            )
            result = await session.run()

        assert received == [DEMO_CHUNK] * 5
        assert result.ok
        assert result.chunks_sent == 5
        assert result.close_code == 1000
        assert result.transcripts[0].transcript == "chunk 1"

    @pytest.mark.asyncio
    @pytest.mark.timeout(10)
    async def test_connection_refused(self):
        """A refused connection should be reported."""
        # Bind and release a port so nothing is listening on it
        async with websockets.serve(lambda ws: None, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]

        session = StreamingSession.for_user("test_user", host="127.0.0.1", port=port)
        result = await session.run()

        assert isinstance(result.error, TransportFailure)
        assert result.chunks_sent == 0
